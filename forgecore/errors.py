"""Module errors: structured error taxonomy for the cache forge."""
#
from enum import Enum
from typing import Dict, Any, Optional
# PURPOSE:
# Every failure the forge can hit maps to one typed exception with an error
# code, so the CLI can print a one-line diagnostic and pick an exit status
# without parsing messages.
#
# ERROR CODE FORMAT:
# - CACHE_XXX: Store lookups and writes
# - CODEC_XXX: Payload encoding/decoding
# - FORGE_XXX: Orchestrator steps
# - INPUT_XXX: Files and flags handed to the CLI
#
# USAGE:
#   from forgecore.errors import CacheMissError
#
#   raise CacheMissError(
#       "Key not present in store",
#       details={"physical_key": "mfst|abc.gz"}
#   )
#
class ErrorCode(Enum):
    # Store errors
    CACHE_MISS = "CACHE_001"
    CACHE_UNAVAILABLE = "CACHE_002"
    CACHE_COMMAND_FAILED = "CACHE_003"

    # Codec errors
    CODEC_DECODE_FAILED = "CODEC_001"
    CODEC_ENCODE_FAILED = "CODEC_002"

    # Forge errors
    FORGE_FRAGMENT_INDEX = "FORGE_001"
    FORGE_STEP_FAILED = "FORGE_002"

    # Input errors
    INPUT_INVALID = "INPUT_001"


class ForgeError(Exception):
    """
    Base exception for the forge with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "CACHE_001")
        message: Human-readable error message
        details: Optional dictionary with additional context
        exit_code: Process exit status the CLI reports for this error
    """

    code: ErrorCode = ErrorCode.FORGE_STEP_FAILED
    exit_code: int = 1

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[ErrorCode] = None,
    ):
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code

        # Build exception message with code for easy debugging
        super().__init__(f"[{self.code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for JSON serialization.

        Returns:
            Dictionary with code, message, details and exit_code
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "exit_code": self.exit_code,
        }


# ============================================================================
# Store Errors
# ============================================================================

class CacheMissError(ForgeError):
    """The physical key is absent from the store."""
    code = ErrorCode.CACHE_MISS
    exit_code = 3


class StoreError(ForgeError):
    """Base for failures talking to the store."""
    code = ErrorCode.CACHE_COMMAND_FAILED
    exit_code = 4


class StoreUnavailableError(StoreError):
    """Transport or connection failure (refused, reset, timed out)."""
    code = ErrorCode.CACHE_UNAVAILABLE


class StoreCommandError(StoreError):
    """The store answered, but rejected the command (auth, WRONGTYPE, ...)."""
    code = ErrorCode.CACHE_COMMAND_FAILED


# ============================================================================
# Codec Errors
# ============================================================================

class DecodeError(ForgeError):
    """Decompression or structured decode of a stored value failed."""
    code = ErrorCode.CODEC_DECODE_FAILED
    exit_code = 5


class EncodeError(ForgeError):
    """A record could not be turned into bytes."""
    code = ErrorCode.CODEC_ENCODE_FAILED
    exit_code = 6


# ============================================================================
# Forge Errors
# ============================================================================

class FragmentIndexError(ForgeError, IndexError):
    """Mutation targeted a manifest fragment that does not exist."""
    code = ErrorCode.FORGE_FRAGMENT_INDEX
    exit_code = 7


class InputError(ForgeError):
    """A key or payload file handed to the CLI is unusable."""
    code = ErrorCode.INPUT_INVALID
    exit_code = 2


class ForgeStepError(ForgeError):
    """
    Raised by the orchestrator when a step fails.

    Wraps the underlying error (available as `cause` and `__cause__`) and
    reports the cause's exit code so callers see e.g. a cache miss as such.
    """
    code = ErrorCode.FORGE_STEP_FAILED

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        if isinstance(cause, ForgeError):
            self.exit_code = cause.exit_code
        super().__init__(
            f"{step} failed: {cause}",
            details={"step": step, "cause_type": type(cause).__name__},
        )


# ============================================================================
# Module-Level Exports
# ============================================================================

__all__ = [
    "ErrorCode",
    "ForgeError",
    "CacheMissError",
    "StoreError",
    "StoreUnavailableError",
    "StoreCommandError",
    "DecodeError",
    "EncodeError",
    "FragmentIndexError",
    "InputError",
    "ForgeStepError",
]
