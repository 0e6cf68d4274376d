"""
Unit tests for ProcessInvoicesUseCase.

Tests batch processing with mocked extractor, repository and file storage.
"""

import asyncio
import hashlib
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.application.use_cases import IncomingFile, ProcessInvoicesUseCase
from src.application.use_cases.process_invoices import CANCELLED_MESSAGE, NO_VALID_FILES_MESSAGE
from src.core.entities import (
    ExtractedInvoice,
    ExtractionResult,
    Invoice,
    InvoiceStatus,
    OutcomeStatus,
)
from src.core.exceptions import (
    DatabaseError,
    DuplicateContentError,
    ExtractionError,
    InvalidInputError,
)
from src.core.services import InvoiceValidator
from src.core.services.duplicate_detector import DUPLICATE_WARNING_CODE


def make_extractor(extracted: ExtractedInvoice) -> MagicMock:
    """Extractor mock returning the same extracted invoice for every file."""
    extractor = MagicMock()
    extractor.name = "fake"

    async def extract(content: bytes, file_name: str) -> ExtractionResult:
        return ExtractionResult.ok(extracted, "fake", file_name)

    extractor.extract_invoice = AsyncMock(side_effect=extract)
    return extractor


@pytest.fixture
def mock_repository():
    repo = MagicMock()
    repo.get_by_file_hash = AsyncMock(return_value=None)
    repo.find_similar = AsyncMock(return_value=[])
    repo.add = AsyncMock(side_effect=lambda invoice: invoice)
    return repo


@pytest.fixture
def mock_storage():
    storage = MagicMock()
    storage.hash_content = MagicMock(side_effect=lambda content: hashlib.sha256(content).hexdigest())
    storage.save = AsyncMock(side_effect=lambda content, file_name: f"/uploads/{file_name}")
    storage.delete = AsyncMock(return_value=True)
    return storage


@pytest.fixture
def extractor(sample_extracted_invoice):
    return make_extractor(sample_extracted_invoice)


@pytest.fixture
def use_case(extractor, mock_repository, mock_storage) -> ProcessInvoicesUseCase:
    return ProcessInvoicesUseCase(
        extractor=extractor,
        repository=mock_repository,
        file_storage=mock_storage,
        validator=InvoiceValidator(),
    )


def pdfs(count: int) -> list[IncomingFile]:
    return [IncomingFile(f"invoice_{i}.pdf", f"%PDF-1.4 document {i}".encode()) for i in range(count)]


class TestProcessBatchHappyPath:
    """Tests for a batch where everything succeeds."""

    @pytest.mark.asyncio
    async def test_all_files_processed(self, use_case, mock_repository):
        result = await use_case.process_batch(pdfs(3))

        assert result.success
        assert result.total_processed == 3
        assert result.total_failed == 0
        assert result.total_duplicates == 0
        assert result.errors == []
        assert [o.status for o in result.results] == [OutcomeStatus.PROCESSED] * 3
        assert mock_repository.add.await_count == 3

    @pytest.mark.asyncio
    async def test_outcomes_follow_input_order(self, use_case):
        files = pdfs(4)
        result = await use_case.process_batch(files)
        assert [o.file_name for o in result.results] == [f.file_name for f in files]

    @pytest.mark.asyncio
    async def test_stored_invoice_carries_file_metadata(self, use_case, mock_repository):
        incoming = IncomingFile("scan.pdf", b"%PDF scan")

        result = await use_case.process_batch([incoming])

        stored: Invoice = mock_repository.add.await_args.args[0]
        assert stored.original_file_name == "scan.pdf"
        assert stored.file_path == "/uploads/scan.pdf"
        assert stored.file_hash == hashlib.sha256(b"%PDF scan").hexdigest()
        assert stored.status is InvoiceStatus.PROCESSED
        assert result.results[0].invoice_id == stored.id


class TestFailureIsolation:
    """One failing file never affects its siblings."""

    @pytest.mark.asyncio
    async def test_extractor_exception_fails_only_that_file(
        self, use_case, extractor, mock_repository, sample_extracted_invoice
    ):
        async def extract(content: bytes, file_name: str) -> ExtractionResult:
            if file_name == "invoice_2.pdf":
                raise RuntimeError("scanner exploded")
            return ExtractionResult.ok(sample_extracted_invoice, "fake", file_name)

        extractor.extract_invoice.side_effect = extract

        result = await use_case.process_batch(pdfs(5))

        assert result.total_processed == 4
        assert result.total_failed == 1
        failed = result.results[2]
        assert failed.status is OutcomeStatus.FAILED
        assert failed.processing_error == "scanner exploded"
        # The failed attempt is still stored for audit
        assert failed.invoice.invoice_number == "PROCESSING_FAILED"
        assert mock_repository.add.await_count == 5

    @pytest.mark.asyncio
    async def test_failed_extraction_result(self, use_case, extractor):
        extractor.extract_invoice.side_effect = None
        extractor.extract_invoice.return_value = ExtractionResult.failure(
            "openai API error: timed out", "fake", "a.pdf"
        )

        result = await use_case.process_batch(pdfs(1))

        outcome = result.results[0]
        assert outcome.status is OutcomeStatus.FAILED
        assert [e.code for e in outcome.errors] == ["EXTRACTION_ERROR"]
        assert outcome.invoice.status is InvoiceStatus.FAILED
        assert not result.success

    @pytest.mark.asyncio
    async def test_repository_failure_removes_saved_file(self, use_case, mock_repository, mock_storage):
        async def add(invoice):
            if invoice.original_file_name == "invoice_1.pdf":
                raise DatabaseError("add invoice", "disk I/O error")
            return invoice

        mock_repository.add.side_effect = add

        result = await use_case.process_batch(pdfs(2))

        assert result.total_processed == 1
        assert result.total_failed == 1
        assert result.results[1].status is OutcomeStatus.FAILED
        assert "disk I/O error" in result.results[1].processing_error
        mock_storage.delete.assert_awaited_once_with("/uploads/invoice_1.pdf")

    @pytest.mark.asyncio
    async def test_cancel_after_commit_keeps_stored_invoice(self, use_case, mock_repository, mock_storage):
        stored = []

        async def add(invoice):
            stored.append(invoice)
            raise asyncio.CancelledError()

        mock_repository.add.side_effect = add
        mock_repository.get_by_id = AsyncMock(side_effect=lambda invoice_id: stored[0])

        result = await use_case.process_batch(pdfs(1))

        outcome = result.results[0]
        assert outcome.status is OutcomeStatus.PROCESSED
        assert outcome.invoice_id == stored[0].id
        mock_repository.get_by_id.assert_awaited_once_with(stored[0].id)
        mock_storage.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_before_commit_removes_saved_file(self, use_case, mock_repository, mock_storage):
        mock_repository.add.side_effect = asyncio.CancelledError()
        mock_repository.get_by_id = AsyncMock(return_value=None)

        result = await use_case.process_batch(pdfs(1))

        assert result.results[0].status is OutcomeStatus.CANCELLED
        mock_storage.delete.assert_awaited_once_with("/uploads/invoice_0.pdf")

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_failed_outcome(self, use_case, mock_storage):
        mock_storage.save.side_effect = OSError("disk full")

        result = await use_case.process_batch(pdfs(2))

        assert result.total_failed == 2
        assert all(o.processing_error == "disk full" for o in result.results)


class TestDuplicates:
    """Exact and near-duplicate handling."""

    @pytest.mark.asyncio
    async def test_exact_duplicate_skips_extraction(
        self, use_case, extractor, mock_repository, mock_storage, sample_invoice
    ):
        mock_repository.get_by_file_hash.return_value = sample_invoice

        result = await use_case.process_batch(pdfs(1))

        outcome = result.results[0]
        assert outcome.status is OutcomeStatus.DUPLICATE
        assert outcome.errors[0].code == "DUPLICATE_CONTENT"
        assert "INV-2024-001" in outcome.processing_error
        assert result.total_duplicates == 1
        assert result.total_failed == 1
        assert result.total_processed == 0
        extractor.extract_invoice.assert_not_awaited()
        mock_storage.save.assert_not_awaited()
        mock_repository.add.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_within_same_batch_is_caught_on_insert(self, use_case, mock_repository):
        async def add(invoice):
            raise DuplicateContentError(invoice.file_hash, "INV-2024-001")

        mock_repository.add.side_effect = add

        result = await use_case.process_batch(pdfs(1))

        assert result.results[0].status is OutcomeStatus.DUPLICATE
        assert result.total_duplicates == 1

    @pytest.mark.asyncio
    async def test_near_duplicate_is_a_warning(self, use_case, mock_repository, sample_invoice):
        mock_repository.find_similar.return_value = [sample_invoice]

        result = await use_case.process_batch(pdfs(1))

        outcome = result.results[0]
        assert outcome.status is OutcomeStatus.PROCESSED
        assert [w.code for w in outcome.warnings] == [DUPLICATE_WARNING_CODE]
        assert result.total_processed == 1
        assert result.total_duplicates == 1

    @pytest.mark.asyncio
    async def test_near_duplicate_check_can_be_disabled(self, use_case, mock_repository, sample_invoice):
        mock_repository.find_similar.return_value = [sample_invoice]

        result = await use_case.process_batch(pdfs(1), enable_duplicate_detection=False)

        assert result.results[0].warnings == []
        mock_repository.find_similar.assert_not_awaited()


    @pytest.mark.asyncio
    async def test_identical_files_in_one_batch_extracted_once(
        self, use_case, extractor, mock_repository, mock_storage
    ):
        files = [
            IncomingFile("a.pdf", b"%PDF same bytes"),
            IncomingFile("b.pdf", b"%PDF same bytes"),
            IncomingFile("c.pdf", b"%PDF other bytes"),
        ]

        result = await use_case.process_batch(files)

        assert [o.status for o in result.results] == [
            OutcomeStatus.PROCESSED,
            OutcomeStatus.DUPLICATE,
            OutcomeStatus.PROCESSED,
        ]
        repeat = result.results[1]
        assert repeat.errors[0].code == "DUPLICATE_CONTENT"
        assert "a.pdf" in repeat.processing_error
        assert result.total_processed == 2
        assert result.total_failed == 1
        assert result.total_duplicates == 1
        extracted_names = sorted(call.args[1] for call in extractor.extract_invoice.await_args_list)
        assert extracted_names == ["a.pdf", "c.pdf"]
        assert mock_repository.add.await_count == 2
        assert mock_storage.save.await_count == 2


class TestValidation:
    """Validation findings and their effect on status."""

    @pytest.mark.asyncio
    async def test_validation_errors_fail_but_persist(
        self, mock_repository, mock_storage, sample_extracted_invoice
    ):
        extracted = sample_extracted_invoice.model_copy(update={"customer_name": ""})
        use_case = ProcessInvoicesUseCase(
            extractor=make_extractor(extracted),
            repository=mock_repository,
            file_storage=mock_storage,
        )

        result = await use_case.process_batch(pdfs(1))

        outcome = result.results[0]
        assert outcome.status is OutcomeStatus.FAILED
        assert [e.code for e in outcome.errors] == ["CustomerName"]
        assert outcome.processing_error == "Validation failed with 1 error(s)"
        mock_repository.add.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_validation_can_be_disabled(self, mock_repository, mock_storage, sample_extracted_invoice):
        extracted = sample_extracted_invoice.model_copy(update={"customer_name": ""})
        use_case = ProcessInvoicesUseCase(
            extractor=make_extractor(extracted),
            repository=mock_repository,
            file_storage=mock_storage,
        )

        result = await use_case.process_batch(pdfs(1), enable_validation=False)

        assert result.results[0].status is OutcomeStatus.PROCESSED
        assert result.results[0].errors == []

    @pytest.mark.asyncio
    async def test_warnings_do_not_fail(self, mock_repository, mock_storage, sample_extracted_invoice):
        extracted = sample_extracted_invoice.model_copy(update={"total_amount": Decimal("99.00")})
        use_case = ProcessInvoicesUseCase(
            extractor=make_extractor(extracted),
            repository=mock_repository,
            file_storage=mock_storage,
        )

        result = await use_case.process_batch(pdfs(1))

        outcome = result.results[0]
        assert outcome.status is OutcomeStatus.PROCESSED
        assert [w.code for w in outcome.warnings] == ["AMOUNT_MISMATCH"]

    @pytest.mark.asyncio
    async def test_unassemblable_invoice_is_stored_as_failed(
        self, mock_repository, mock_storage, sample_extracted_invoice
    ):
        extracted = sample_extracted_invoice.model_copy(update={"vendor_name": ""})
        use_case = ProcessInvoicesUseCase(
            extractor=make_extractor(extracted),
            repository=mock_repository,
            file_storage=mock_storage,
        )

        result = await use_case.process_batch(pdfs(1))

        outcome = result.results[0]
        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.processing_error.startswith("Invalid invoice data:")
        assert "VendorName" in [e.code for e in outcome.errors]
        mock_repository.find_similar.assert_not_awaited()


    @pytest.mark.asyncio
    async def test_invoice_is_processing_while_checks_run(
        self, extractor, mock_repository, mock_storage
    ):
        seen_statuses = []

        async def flag(invoice):
            seen_statuses.append(invoice.status)
            return []

        detector = MagicMock()
        detector.find_exact = AsyncMock(return_value=None)
        detector.flag_near_duplicates = AsyncMock(side_effect=flag)
        use_case = ProcessInvoicesUseCase(
            extractor=extractor,
            repository=mock_repository,
            file_storage=mock_storage,
            duplicate_detector=detector,
        )

        result = await use_case.process_batch(pdfs(1))

        assert seen_statuses == [InvoiceStatus.PROCESSING]
        assert result.results[0].invoice.status is InvoiceStatus.PROCESSED


class TestScreening:
    """Request limits and per-file pre-checks."""

    @pytest.mark.asyncio
    async def test_no_files_raises(self, use_case):
        with pytest.raises(InvalidInputError):
            await use_case.process_batch([])

    @pytest.mark.asyncio
    async def test_too_many_files_raises(self, use_case):
        with pytest.raises(InvalidInputError) as exc_info:
            await use_case.process_batch(pdfs(11))
        assert "Maximum 10 files" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_rejected_files_are_reported(self, use_case, extractor):
        files = [
            IncomingFile("notes.txt", b"hello"),
            IncomingFile("empty.pdf", b""),
            IncomingFile("good.PDF", b"%PDF good"),
        ]

        result = await use_case.process_batch(files)

        assert result.errors == ["Invalid file type: notes.txt", "Empty file: empty.pdf"]
        assert result.total_failed == 2
        assert result.total_processed == 1
        assert [o.file_name for o in result.results] == ["good.PDF"]
        assert extractor.extract_invoice.await_count == 1

    @pytest.mark.asyncio
    async def test_oversized_file(self, use_case, monkeypatch):
        from src.config import reset_settings

        monkeypatch.setenv("PROCESSING_MAX_FILE_SIZE", "8")
        reset_settings()

        result = await use_case.process_batch([IncomingFile("big.pdf", b"0123456789")])

        assert "too large" in result.errors[0]
        assert result.errors[-1] == NO_VALID_FILES_MESSAGE

    @pytest.mark.asyncio
    async def test_nothing_valid(self, use_case, extractor):
        result = await use_case.process_batch([IncomingFile("a.exe", b"MZ")])

        assert not result.success
        assert result.results == []
        assert result.errors == ["Invalid file type: a.exe", NO_VALID_FILES_MESSAGE]
        extractor.extract_invoice.assert_not_awaited()


class TestConcurrency:
    """Concurrency cap and cancellation."""

    @pytest.mark.asyncio
    async def test_concurrency_cap(self, mock_repository, mock_storage, sample_extracted_invoice):
        active = 0
        peak = 0

        async def extract(content: bytes, file_name: str) -> ExtractionResult:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.02)
            active -= 1
            return ExtractionResult.ok(sample_extracted_invoice, "fake", file_name)

        extractor = MagicMock()
        extractor.name = "fake"
        extractor.extract_invoice = AsyncMock(side_effect=extract)
        use_case = ProcessInvoicesUseCase(
            extractor=extractor,
            repository=mock_repository,
            file_storage=mock_storage,
            max_concurrency=2,
        )

        result = await use_case.process_batch(pdfs(6))

        assert result.total_processed == 6
        assert peak == 2

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, use_case, extractor):
        cancel = asyncio.Event()
        cancel.set()

        result = await use_case.process_batch(pdfs(3), cancel_event=cancel)

        assert [o.status for o in result.results] == [OutcomeStatus.CANCELLED] * 3
        assert all(o.processing_error == CANCELLED_MESSAGE for o in result.results)
        assert result.total_failed == 3
        extractor.extract_invoice.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_in_flight(self, mock_repository, mock_storage):
        started = asyncio.Event()

        async def extract(content: bytes, file_name: str) -> ExtractionResult:
            started.set()
            await asyncio.sleep(30)
            raise AssertionError("should have been cancelled")

        extractor = MagicMock()
        extractor.name = "fake"
        extractor.extract_invoice = AsyncMock(side_effect=extract)
        use_case = ProcessInvoicesUseCase(
            extractor=extractor,
            repository=mock_repository,
            file_storage=mock_storage,
            max_concurrency=1,
        )
        cancel = asyncio.Event()

        async def cancel_when_started():
            await started.wait()
            cancel.set()

        canceller = asyncio.create_task(cancel_when_started())
        result = await asyncio.wait_for(use_case.process_batch(pdfs(3), cancel_event=cancel), 5)
        await canceller

        assert [o.status for o in result.results] == [OutcomeStatus.CANCELLED] * 3
        assert result.total_failed == 3
        assert not result.success
        # The file saved before cancellation is cleaned up
        mock_storage.delete.assert_awaited_once_with("/uploads/invoice_0.pdf")
        mock_repository.add.assert_not_awaited()


class TestObserver:
    """Outcome observer notifications."""

    @pytest.mark.asyncio
    async def test_observer_sees_every_outcome(self, extractor, mock_repository, mock_storage):
        seen = []
        use_case = ProcessInvoicesUseCase(
            extractor=extractor,
            repository=mock_repository,
            file_storage=mock_storage,
            observer=lambda outcome: seen.append(outcome.file_name),
        )

        await use_case.process_batch(pdfs(2))

        assert sorted(seen) == ["invoice_0.pdf", "invoice_1.pdf"]

    @pytest.mark.asyncio
    async def test_observer_called_as_each_file_finishes(
        self, mock_repository, mock_storage, sample_extracted_invoice
    ):
        seen = []
        slow_may_finish = asyncio.Event()

        async def extract(content: bytes, file_name: str) -> ExtractionResult:
            if file_name == "invoice_0.pdf":
                await slow_may_finish.wait()
            return ExtractionResult.ok(sample_extracted_invoice, "fake", file_name)

        def observe(outcome):
            seen.append(outcome.file_name)
            if outcome.file_name == "invoice_1.pdf":
                slow_may_finish.set()

        extractor = MagicMock()
        extractor.name = "fake"
        extractor.extract_invoice = AsyncMock(side_effect=extract)
        use_case = ProcessInvoicesUseCase(
            extractor=extractor,
            repository=mock_repository,
            file_storage=mock_storage,
            max_concurrency=2,
            observer=observe,
        )

        result = await asyncio.wait_for(use_case.process_batch(pdfs(2)), 5)

        assert seen == ["invoice_1.pdf", "invoice_0.pdf"]
        assert [o.file_name for o in result.results] == ["invoice_0.pdf", "invoice_1.pdf"]
        assert result.total_processed == 2

    @pytest.mark.asyncio
    async def test_observer_sees_cancelled_files(self, extractor, mock_repository, mock_storage):
        seen = []
        use_case = ProcessInvoicesUseCase(
            extractor=extractor,
            repository=mock_repository,
            file_storage=mock_storage,
            observer=lambda outcome: seen.append(outcome.status),
        )
        cancel = asyncio.Event()
        cancel.set()

        await use_case.process_batch(pdfs(2), cancel_event=cancel)

        assert seen == [OutcomeStatus.CANCELLED] * 2

    @pytest.mark.asyncio
    async def test_observer_errors_are_ignored(self, extractor, mock_repository, mock_storage):
        def broken(outcome):
            raise RuntimeError("observer down")

        use_case = ProcessInvoicesUseCase(
            extractor=extractor,
            repository=mock_repository,
            file_storage=mock_storage,
            observer=broken,
        )

        result = await use_case.process_batch(pdfs(1))

        assert result.total_processed == 1


class TestProcessSingle:
    """Tests for process_single()."""

    @pytest.mark.asyncio
    async def test_returns_invoice_id(self, use_case, mock_repository):
        invoice_id = await use_case.process_single(b"%PDF single", "single.pdf")

        stored = mock_repository.add.await_args.args[0]
        assert invoice_id == stored.id

    @pytest.mark.asyncio
    async def test_duplicate_raises(self, use_case, mock_repository, sample_invoice):
        mock_repository.get_by_file_hash.return_value = sample_invoice

        with pytest.raises(DuplicateContentError):
            await use_case.process_single(b"%PDF single", "single.pdf")

    @pytest.mark.asyncio
    async def test_extraction_failure_raises_after_storing(self, use_case, extractor, mock_repository):
        extractor.extract_invoice.side_effect = None
        extractor.extract_invoice.return_value = ExtractionResult.failure("unreadable", "fake", "x.pdf")

        with pytest.raises(ExtractionError) as exc_info:
            await use_case.process_single(b"%PDF single", "x.pdf")

        stored = mock_repository.add.await_args.args[0]
        assert exc_info.value.details["invoice_id"] == stored.id
        assert exc_info.value.details["reason"] == "unreadable"


class TestLazyWiring:
    """Dependencies resolve from the service factories when not injected."""

    @pytest.mark.asyncio
    async def test_defaults_use_mock_extractor_and_sqlite(self, isolated_settings):
        from src.infrastructure.storage.sqlite import close_pool
        from src.infrastructure.storage.sqlite.migrations import initialize_database

        await initialize_database(create_backup_before=False)
        use_case = ProcessInvoicesUseCase()

        try:
            result = await use_case.process_batch([IncomingFile("a.pdf", b"%PDF lazy")])
        finally:
            await close_pool()

        assert result.total_processed == 1
        assert result.results[0].invoice.original_file_name == "a.pdf"
        assert list((isolated_settings / "uploads").iterdir())
