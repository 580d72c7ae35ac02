# errors.py
"""应用异常：每类错误自带 HTTP 状态码，由 main.py 的异常处理器统一转成 JSON。"""


class JournalAppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(JournalAppError):
    status_code = 404


class ValidationFailed(JournalAppError):
    status_code = 400


class AuthenticationError(JournalAppError):
    status_code = 401


class PersistenceError(JournalAppError):
    status_code = 500


class UpstreamError(Exception):
    """外部模型不可用、超时或返回异常。只在服务内部流转，由降级逻辑吸收。"""
