import asyncio
from typing import Callable, Optional

from autoaudit.clients.gemini_client import generate_content_with_retry
from autoaudit.clients.redis_client import load_cached_report, report_cache_key, store_report
from autoaudit.config import CredentialStore, config
from autoaudit.document.extractor import extract_content
from autoaudit.errors import AssemblyError, AuditError
from autoaudit.models.content import ExtractedContent, SourceFile
from autoaudit.models.report import ReportDocument
from autoaudit.services.request_assembler import build_report, build_request, parse_report


class AuditAnalyzer:
    """
    Runs one analysis: extract both uploads concurrently, assemble the request,
    call the analysis service and parse the report.

    `generate` is the transport call and defaults to the retrying Gemini client;
    tests inject a fake with the same keyword signature.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        model: Optional[str] = None,
        generate: Optional[Callable] = None,
        use_cache: bool = True,
    ):
        self.credentials = credentials
        self.model = model or config.GEMINI_GENERATION_MODEL
        self.generate = generate or generate_content_with_retry
        self.use_cache = use_cache

    async def _extract(self, file: Optional[SourceFile]) -> Optional[ExtractedContent]:
        if file is None:
            return None
        return await asyncio.to_thread(extract_content, file)

    async def analyze(
        self,
        exam_file: SourceFile,
        matrix_file: Optional[SourceFile] = None,
        refresh: bool = False,
    ) -> ReportDocument:
        """
        Analyze one exam and its optional matrix.

        With refresh=True the cached report is not consulted; the fresh result
        still replaces the cache entry.
        """
        # Credentials are checked before any extraction or network work
        api_key = self.credentials.resolve()
        has_matrix = matrix_file is not None

        cache_key = None
        if self.use_cache:
            cache_key = report_cache_key(self.model, exam_file.content, matrix_file.content if has_matrix else None)
            cached = None if refresh else load_cached_report(cache_key)
            if cached:
                try:
                    return build_report(cached, has_matrix)
                except AssemblyError:
                    print("Cached report no longer valid, re-running analysis")

        exam, matrix = await asyncio.gather(self._extract(exam_file), self._extract(matrix_file))
        request = build_request(exam, matrix)

        print(f"Requesting analysis from {self.model} (matrix attached: {has_matrix})")
        try:
            response = await asyncio.to_thread(
                self.generate,
                api_key=api_key,
                model=self.model,
                contents=request.contents,
                config=request.config,
                source=self.credentials.source,
            )
        except AuditError:
            raise
        except Exception as e:
            print(f"Analysis request failed: {e}")
            raise AssemblyError(f"Lỗi xử lý: {e}") from e

        raw = getattr(response, "text", None) if response is not None else None
        report = parse_report(raw, has_matrix=request.has_matrix)
        print(f"Analysis complete: {report.subject} ({report.total_questions} questions)")

        if cache_key:
            store_report(cache_key, report.to_wire())
        return report
