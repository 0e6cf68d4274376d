"""
Process Invoices Use Case.

Runs uploaded documents through hashing, extraction, validation,
duplicate detection and persistence, one independent pipeline per file.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from src.config import bind_batch_context, clear_batch_context, get_logger, get_settings
from src.core.entities import (
    BatchResult,
    ExtractedInvoice,
    ExtractionResult,
    FileOutcome,
    Invoice,
    InvoiceStatus,
    OutcomeStatus,
    ValidationError,
)
from src.core.exceptions import (
    DomainError,
    DuplicateContentError,
    ExtractionError,
    FileTooLargeError,
    InvalidInputError,
    StorageError,
)
from src.core.interfaces import IFileStorage, IInvoiceExtractor, IInvoiceRepository
from src.core.services import (
    DuplicateDetector,
    InvoiceValidator,
    assemble_invoice,
    failed_invoice,
)
from src.core.services.duplicate_detector import DUPLICATE_WARNING_CODE
from src.core.services.invoice_assembler import EXTRACTION_ERROR_CODE

logger = get_logger(__name__)

CANCELLED_MESSAGE = "Processing cancelled"
NO_VALID_FILES_MESSAGE = "No valid files to process"


@dataclass
class IncomingFile:
    """An uploaded document, fully read into memory."""

    file_name: str
    content: bytes


OutcomeObserver = Callable[[FileOutcome], None]


class ProcessInvoicesUseCase:
    """
    Use case for batch invoice processing.

    Flow per file:
    1. Hash content and reject exact duplicates, stored or earlier in the
       same batch (extractor is never called)
    2. Save the file and extract invoice data
    3. Validate the extracted data
    4. Build the invoice and flag near-duplicates
    5. Store invoice, items and findings in one transaction

    Files run concurrently up to ``max_concurrency``. A failure in one
    file becomes that file's outcome and never affects its siblings.
    """

    def __init__(
        self,
        extractor: IInvoiceExtractor | None = None,
        repository: IInvoiceRepository | None = None,
        file_storage: IFileStorage | None = None,
        validator: InvoiceValidator | None = None,
        duplicate_detector: DuplicateDetector | None = None,
        max_concurrency: int | None = None,
        observer: OutcomeObserver | None = None,
    ):
        """
        Initialize use case with optional dependency overrides.

        Dependencies that are not provided are resolved lazily from the
        application service factories.

        Args:
            extractor: Invoice extractor (mock or LLM-backed)
            repository: Invoice persistence
            file_storage: Raw document storage
            validator: Validation engine
            duplicate_detector: Near-duplicate lookups
            max_concurrency: Files processed at once (default from settings)
            observer: Called with every finished FileOutcome
        """
        self._extractor = extractor
        self._repository = repository
        self._file_storage = file_storage
        self._validator = validator
        self._duplicate_detector = duplicate_detector
        self._max_concurrency = max_concurrency
        self._observer = observer

    def _get_extractor(self) -> IInvoiceExtractor:
        if self._extractor is None:
            from src.application.services import get_invoice_extractor

            self._extractor = get_invoice_extractor()
        return self._extractor

    async def _get_repository(self) -> IInvoiceRepository:
        if self._repository is None:
            from src.application.services import get_invoice_repository

            self._repository = await get_invoice_repository()
        return self._repository

    def _get_file_storage(self) -> IFileStorage:
        if self._file_storage is None:
            from src.application.services import get_file_storage

            self._file_storage = get_file_storage()
        return self._file_storage

    def _get_validator(self) -> InvoiceValidator:
        if self._validator is None:
            from src.application.services import get_invoice_validator

            self._validator = get_invoice_validator()
        return self._validator

    async def _get_duplicate_detector(self) -> DuplicateDetector:
        if self._duplicate_detector is None:
            self._duplicate_detector = DuplicateDetector(await self._get_repository())
        return self._duplicate_detector

    # Batch

    async def process_batch(
        self,
        files: list[IncomingFile],
        enable_validation: bool | None = None,
        enable_duplicate_detection: bool | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchResult:
        """
        Process a batch of uploaded files.

        Args:
            files: Uploaded documents
            enable_validation: Run the validation engine (default from settings)
            enable_duplicate_detection: Run the near-duplicate check (default from settings)
            cancel_event: When set, stops files not yet started and cancels
                files in flight

        Returns:
            BatchResult with one outcome per accepted file

        Raises:
            InvalidInputError: No files, or more than the per-request limit
        """
        settings = get_settings().processing
        validate = settings.enable_validation if enable_validation is None else enable_validation
        detect = (
            settings.enable_duplicate_detection
            if enable_duplicate_detection is None
            else enable_duplicate_detection
        )

        result = BatchResult()
        accepted = self._screen(files, result)
        if not accepted:
            result.errors.append(NO_VALID_FILES_MESSAGE)
            logger.warning("batch_rejected", files=len(files), errors=len(result.errors))
            return result

        bind_batch_context(batch_id=uuid4().hex[:12])
        try:
            logger.info(
                "batch_started",
                files=len(accepted),
                rejected=len(files) - len(accepted),
                validation=validate,
                duplicate_detection=detect,
            )
            outcomes = await self._run_concurrently(accepted, validate, detect, cancel_event)

            for outcome in outcomes:
                self._tally(result, outcome)

            result.success = result.total_processed > 0
            logger.info(
                "batch_complete",
                processed=result.total_processed,
                failed=result.total_failed,
                duplicates=result.total_duplicates,
            )
            return result
        finally:
            clear_batch_context("batch_id")

    def _screen(self, files: list[IncomingFile], result: BatchResult) -> list[IncomingFile]:
        """Check request limits and drop files that cannot be processed."""
        settings = get_settings().processing
        if not files:
            raise InvalidInputError("files", "No files provided")
        if len(files) > settings.max_files:
            raise InvalidInputError(
                "files",
                f"Maximum {settings.max_files} files allowed per request",
                len(files),
            )

        allowed = {ext.lower() for ext in settings.allowed_extensions}
        accepted = []
        for incoming in files:
            extension = Path(incoming.file_name or "").suffix.lower()
            if extension not in allowed:
                result.errors.append(f"Invalid file type: {incoming.file_name}")
            elif not incoming.content:
                result.errors.append(f"Empty file: {incoming.file_name}")
            elif len(incoming.content) > settings.max_file_size:
                error = FileTooLargeError(
                    incoming.file_name, len(incoming.content), settings.max_file_size
                )
                result.errors.append(error.details["message"])
            else:
                accepted.append(incoming)
                continue
            result.total_failed += 1
        return accepted

    async def _run_concurrently(
        self,
        files: list[IncomingFile],
        validate: bool,
        detect: bool,
        cancel_event: asyncio.Event | None,
    ) -> list[FileOutcome]:
        """
        Run each distinct document once; repeats of content already seen in
        this batch become duplicate outcomes without being extracted.
        """
        limit = self._max_concurrency or get_settings().processing.max_concurrency
        semaphore = asyncio.Semaphore(max(1, limit))
        storage = self._get_file_storage()

        async def run_one(incoming: IncomingFile) -> FileOutcome:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    outcome = self._cancelled(incoming)
                else:
                    outcome = await self._process_file(incoming, validate, detect)
            self._notify(outcome)
            return outcome

        first_by_hash: dict[str, str] = {}
        slots: list[FileOutcome | asyncio.Task] = []
        for incoming in files:
            file_hash = storage.hash_content(incoming.content)
            if file_hash in first_by_hash:
                outcome = self._repeated_in_batch(incoming, file_hash, first_by_hash[file_hash])
                self._notify(outcome)
                slots.append(outcome)
            else:
                first_by_hash[file_hash] = incoming.file_name
                slots.append(asyncio.create_task(run_one(incoming)))

        tasks = [slot for slot in slots if isinstance(slot, asyncio.Task)]
        watcher = None
        if cancel_event is not None:
            watcher = asyncio.create_task(self._cancel_when_set(cancel_event, tasks))

        try:
            gathered = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            if watcher is not None:
                watcher.cancel()

        finished = iter(gathered)
        outcomes = []
        for incoming, slot in zip(files, slots):
            if isinstance(slot, FileOutcome):
                outcomes.append(slot)
                continue
            item = next(finished)
            if isinstance(item, BaseException):
                # Task never produced an outcome, so the observer has not seen it
                if isinstance(item, asyncio.CancelledError):
                    item = self._cancelled(incoming)
                else:
                    logger.error("file_task_crashed", file_name=incoming.file_name, error=str(item))
                    item = FileOutcome(
                        file_name=incoming.file_name,
                        status=OutcomeStatus.FAILED,
                        processing_error=str(item) or type(item).__name__,
                    )
                self._notify(item)
            outcomes.append(item)
        return outcomes

    @staticmethod
    async def _cancel_when_set(event: asyncio.Event, tasks: list[asyncio.Task]) -> None:
        await event.wait()
        pending = [task for task in tasks if not task.done()]
        logger.info("batch_cancel_requested", pending=len(pending))
        for task in pending:
            task.cancel()

    @staticmethod
    def _cancelled(incoming: IncomingFile) -> FileOutcome:
        return FileOutcome(
            file_name=incoming.file_name,
            status=OutcomeStatus.CANCELLED,
            processing_error=CANCELLED_MESSAGE,
        )

    @staticmethod
    def _repeated_in_batch(incoming: IncomingFile, file_hash: str, original: str) -> FileOutcome:
        code = DuplicateContentError(file_hash).code
        message = f"Same content as {original} earlier in this batch"
        logger.info("duplicate_in_batch", file_name=incoming.file_name, original=original)
        return FileOutcome(
            file_name=incoming.file_name,
            status=OutcomeStatus.DUPLICATE,
            errors=[ValidationError(code=code, message=message)],
            processing_error=message,
        )

    @staticmethod
    def _tally(result: BatchResult, outcome: FileOutcome) -> None:
        result.results.append(outcome)
        if outcome.status is OutcomeStatus.PROCESSED:
            result.total_processed += 1
        else:
            result.total_failed += 1

        near_duplicate = any(w.code == DUPLICATE_WARNING_CODE for w in outcome.warnings)
        if outcome.status is OutcomeStatus.DUPLICATE or near_duplicate:
            result.total_duplicates += 1

    def _notify(self, outcome: FileOutcome) -> None:
        if self._observer is None:
            return
        try:
            self._observer(outcome)
        except Exception as e:
            logger.warning("outcome_observer_failed", file_name=outcome.file_name, error=str(e))

    async def _process_file(self, incoming: IncomingFile, validate: bool, detect: bool) -> FileOutcome:
        """Run one file and turn every failure into its outcome."""
        try:
            invoice = await self._pipeline(incoming, validate, detect)
        except DuplicateContentError as e:
            return FileOutcome(
                file_name=incoming.file_name,
                status=OutcomeStatus.DUPLICATE,
                errors=[ValidationError(code=e.code, message=e.message)],
                processing_error=e.message,
            )
        except StorageError as e:
            logger.error("invoice_persist_failed", file_name=incoming.file_name, error=e.message)
            return FileOutcome(
                file_name=incoming.file_name,
                status=OutcomeStatus.FAILED,
                processing_error=e.message,
            )
        except Exception as e:
            logger.error(
                "file_processing_failed",
                file_name=incoming.file_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return FileOutcome(
                file_name=incoming.file_name,
                status=OutcomeStatus.FAILED,
                processing_error=str(e) or type(e).__name__,
            )

        return FileOutcome(
            file_name=incoming.file_name,
            status=(
                OutcomeStatus.PROCESSED
                if invoice.status is InvoiceStatus.PROCESSED
                else OutcomeStatus.FAILED
            ),
            invoice=invoice,
            warnings=list(invoice.validation_warnings),
            errors=list(invoice.validation_errors),
            processing_error=invoice.processing_error,
        )

    # Single file

    async def process_single(self, content: bytes, file_name: str) -> str:
        """
        Process one document outside a batch.

        Returns:
            ID of the stored invoice (also when validation failed)

        Raises:
            DuplicateContentError: Same content was already stored
            ExtractionError: Extraction failed; the failed invoice is stored
            DatabaseError: Invoice could not be stored
        """
        settings = get_settings().processing
        invoice = await self._pipeline(
            IncomingFile(file_name=file_name, content=content),
            settings.enable_validation,
            settings.enable_duplicate_detection,
        )
        if any(e.code == EXTRACTION_ERROR_CODE for e in invoice.validation_errors):
            raise ExtractionError(file_name, invoice.processing_error or "unknown error", invoice.id)
        return invoice.id

    # Pipeline

    async def _pipeline(self, incoming: IncomingFile, validate: bool, detect: bool) -> Invoice:
        """
        Take one file from upload to stored invoice.

        Raises DuplicateContentError for known content and StorageError
        when the invoice cannot be stored.
        """
        file_name = incoming.file_name
        storage = self._get_file_storage()
        detector = await self._get_duplicate_detector()

        file_hash = storage.hash_content(incoming.content)
        existing = await detector.find_exact(file_hash)
        if existing is not None:
            raise DuplicateContentError(file_hash, existing.invoice_number)

        file_path = await storage.save(incoming.content, file_name)
        try:
            extractor = self._get_extractor()
            try:
                extraction = await extractor.extract_invoice(incoming.content, file_name)
            except Exception as e:
                extraction = ExtractionResult.failure(str(e), extractor.name, file_name)

            if not extraction.success or extraction.invoice is None:
                reason = extraction.error or "Extraction returned no data"
                logger.warning("extraction_failed", file_name=file_name, error=reason)
                invoice = failed_invoice(reason)
            else:
                invoice = await self._build_invoice(extraction.invoice, validate, detect)

            invoice.set_file_metadata(file_name, file_path, file_hash)
        except BaseException:
            await storage.delete(file_path)
            raise

        await self._persist(invoice)

        logger.info(
            "file_processed",
            file_name=file_name,
            invoice_id=invoice.id,
            status=invoice.status.value,
            warnings=len(invoice.validation_warnings),
            errors=len(invoice.validation_errors),
        )
        return invoice

    async def _persist(self, invoice: Invoice) -> None:
        """
        Store the invoice, removing its saved file unless the row exists.

        A cancellation can arrive after COMMIT has already landed. The row is
        then kept together with its file and the invoice is reported as stored.
        """
        storage = self._get_file_storage()
        repository = await self._get_repository()
        try:
            await repository.add(invoice)
        except asyncio.CancelledError:
            if await repository.get_by_id(invoice.id) is None:
                await storage.delete(invoice.file_path)
                raise
            logger.warning(
                "invoice_stored_before_cancel",
                file_name=invoice.original_file_name,
                invoice_id=invoice.id,
            )
        except BaseException:
            await storage.delete(invoice.file_path)
            raise

    async def _build_invoice(self, extracted: ExtractedInvoice, validate: bool, detect: bool) -> Invoice:
        findings = self._get_validator().validate(extracted) if validate else None

        assembled = True
        try:
            invoice = assemble_invoice(extracted)
            invoice.update_status(InvoiceStatus.PROCESSING)
        except DomainError as e:
            invoice = failed_invoice(f"Invalid invoice data: {e.message}")
            assembled = False

        if findings is not None:
            for warning in findings.warnings:
                invoice.add_validation_warning(warning.code, warning.message)
            for error in findings.errors:
                invoice.add_validation_error(error.code, error.message)

        if assembled and detect:
            detector = await self._get_duplicate_detector()
            await detector.flag_near_duplicates(invoice)

        if invoice.status is not InvoiceStatus.FAILED:
            if invoice.validation_errors:
                count = len(invoice.validation_errors)
                invoice.set_processing_error(f"Validation failed with {count} error(s)")
                invoice.update_status(InvoiceStatus.FAILED)
            else:
                invoice.update_status(InvoiceStatus.PROCESSED)
        return invoice
