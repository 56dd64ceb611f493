from __future__ import annotations

NO_TOKEN_FOR_USER = 10000
COULD_NOT_GET_FIRST_TOKEN = 10001
NO_TOKEN_TO_REFRESH = 10002
NO_TOKEN_RETURNED = 10003


class BeestatError(RuntimeError):
    status_code = 400

    def __init__(self, message: str, *, code: int | None = None):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(BeestatError):
    status_code = 404


class MultipleRowsError(BeestatError):
    status_code = 500


class AccessDeniedError(BeestatError):
    status_code = 403


class LockTimeoutError(BeestatError):
    status_code = 503

    def __init__(self, lock_name: str, timeout_seconds: float):
        self.lock_name = lock_name
        super().__init__(f"Could not acquire lock {lock_name} within {timeout_seconds}s")


class TokenError(BeestatError):
    pass


class ExternalApiError(BeestatError):
    provider = "external"
    status_code = 502

    def __init__(self, *, status_code: int, detail: str, code: int | None = None):
        self.upstream_status_code = status_code
        self.detail = detail
        super().__init__(f"{self.provider} API error {status_code}: {detail}", code=code)


class EcobeeApiError(ExternalApiError):
    provider = "ecobee"


class EcobeeTokenExpiredError(EcobeeApiError):
    pass


class PatreonApiError(ExternalApiError):
    provider = "patreon"


class PatreonTokenExpiredError(PatreonApiError):
    pass


class SmartyStreetsApiError(ExternalApiError):
    provider = "smarty_streets"


class MailchimpApiError(ExternalApiError):
    provider = "mailchimp"
