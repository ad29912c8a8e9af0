"""Exception types raised by vzdump-unthrottle."""


class UnthrottleError(Exception):
    """Base class for all vzdump-unthrottle errors."""


class UserError(UnthrottleError, ValueError):
    """Bad input from whoever invoked the hook (exit status 1)."""


class UnknownPhaseError(UserError):
    def __init__(self, phase: str):
        self.phase = phase
        super().__init__(f"unknown phase '{phase}'")


class InvalidActionError(UserError):
    def __init__(self, action: str):
        self.action = action
        super().__init__(f"invalid action '{action}'")


class InvalidVMIDError(UserError):
    def __init__(self, vmid: str):
        self.vmid = vmid
        super().__init__(f"invalid VM id '{vmid}' (expected a decimal number)")


class MissingArgumentError(UserError):
    pass


class InvalidLogLevelError(UserError):
    def __init__(self, level: str, choices):
        self.level = level
        super().__init__(f"invalid log level '{level}' (expected one of {', '.join(choices)})")


class ProfileError(UnthrottleError, ValueError):
    """Backup throttle profile could not be read or failed validation."""


class RecordFormatError(UnthrottleError, ValueError):
    """A persisted disk record line could not be parsed."""
