"""
Command-line audit: analyze an exam (and optional matrix), then export the
review report as PDF.
"""
import argparse
import asyncio
import json
from pathlib import Path

from autoaudit.config import config, create_credential_store
from autoaudit.errors import AuditError
from autoaudit.models.content import SourceFile
from autoaudit.pipelines.audit_session import AuditSession
from autoaudit.services.analysis_service import AuditAnalyzer


def _load(path: str) -> SourceFile:
    file_path = Path(path)
    return SourceFile(filename=file_path.name, content=file_path.read_bytes())


async def run_audit(exam: str, matrix: str = None, output_dir: str = None,
                    model: str = None, report_json: str = None, use_cache: bool = True):
    analyzer = AuditAnalyzer(credentials=create_credential_store(), model=model, use_cache=use_cache)
    session = AuditSession(analyzer)

    session.attach("exam", _load(exam))
    if matrix:
        session.attach("matrix", _load(matrix))

    report = await session.start_analysis()
    if report is None:
        raise AuditError(session.error)

    if report_json:
        Path(report_json).write_text(
            json.dumps(report.to_wire(), ensure_ascii=False, indent=2), encoding="utf-8"
        )
        print(f"Report JSON saved to {report_json}")

    return await session.export(output_dir or config.EXPORT_DIR)


def main():
    """Command-line interface for a one-shot audit"""
    parser = argparse.ArgumentParser(
        description="Review an exam paper against its matrix and export the report as PDF"
    )

    parser.add_argument(
        'exam',
        type=str,
        help='Exam file (.docx or .pdf)'
    )

    parser.add_argument(
        '--matrix',
        type=str,
        help='Matrix file (.docx, .xlsx or .xls); omitted means the matrix is synthesized'
    )

    parser.add_argument(
        '--output',
        type=str,
        default=config.EXPORT_DIR,
        help=f'Directory for the exported PDF (default: {config.EXPORT_DIR})'
    )

    parser.add_argument(
        '--model',
        type=str,
        default=config.GEMINI_GENERATION_MODEL,
        help=f'Gemini model (default: {config.GEMINI_GENERATION_MODEL})'
    )

    parser.add_argument(
        '--json',
        dest='report_json',
        type=str,
        help='Also save the report payload as JSON to this path'
    )

    parser.add_argument(
        '--no-cache',
        action='store_true',
        help='Skip the Redis report cache'
    )

    args = parser.parse_args()

    try:
        path = asyncio.run(run_audit(
            exam=args.exam,
            matrix=args.matrix,
            output_dir=args.output,
            model=args.model,
            report_json=args.report_json,
            use_cache=not args.no_cache,
        ))
    except AuditError as e:
        print(f"\n Audit failed: {e.user_message}")
        return 1
    except OSError as e:
        print(f"\n Cannot read input file: {e}")
        return 1

    print(f"\nReport exported to {path}")
    return 0


if __name__ == "__main__":
    exit(main())
