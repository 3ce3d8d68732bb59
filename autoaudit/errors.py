"""
Error taxonomy for the audit workflow.

Every AuditError is terminal for the user action that raised it and carries
exactly one localized message meant for display.
"""


class AuditError(Exception):
    default_message = "Đã có lỗi xảy ra trong quá trình phân tích."

    def __init__(self, message: str = None):
        self.user_message = message or self.default_message
        super().__init__(self.user_message)


class ExtractionError(AuditError):
    default_message = "Không thể đọc nội dung file tải lên."


class AssemblyError(AuditError):
    default_message = "AI không phản hồi."


class ConfigurationError(AuditError):
    default_message = "Vui lòng cấu hình API Key trong mục Cài đặt trước khi bắt đầu."


class ExportError(AuditError):
    default_message = "Lỗi xuất PDF. Vui lòng thử lại."


class InvalidUploadError(AuditError):
    default_message = "Định dạng file không được hỗ trợ."


class AnalysisInProgressError(AuditError):
    default_message = "Đang phân tích đề thi, vui lòng đợi."


class PathResolutionError(LookupError):
    """A report path that does not resolve against the document shape"""


class InvalidEditError(ValueError):
    """A value rejected by the type of the targeted report field"""