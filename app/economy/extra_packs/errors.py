class ExtraPacksError(Exception):
    pass


class ExtraPacksValidationError(ExtraPacksError):
    pass


class ExtraPacksNotFoundError(ExtraPacksError):
    pass


class ExtraPacksUserNotFoundError(ExtraPacksNotFoundError):
    pass


class ExtraPackPurchaseNotFoundError(ExtraPacksNotFoundError):
    pass


class ExtraPacksRefundNotAllowedError(ExtraPacksError):
    pass


class ExtraPacksConflictError(ExtraPacksError):
    pass


class InsufficientExtraPacksError(ExtraPacksError):
    def __init__(self, *, requested: int, available: int) -> None:
        super().__init__(f"requested {requested} extra packs, {available} available")
        self.requested = requested
        self.available = available
