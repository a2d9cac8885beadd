# modhost/core/errors.py
from __future__ import annotations

__all__ = [
    "ModHostError",
    "InvalidInputError", "InvalidSourceURL", "InvalidManifestError", "InvalidPluginArchive",
    "NotFoundError", "BucketNotFound", "PackageNotFound",
    "ConflictError", "DuplicateBucket", "ReservedNameError", "PackageAlreadyInstalled",
    "ExternalToolError", "CloneFailed", "RequirementsInstallError", "DownloadFailed",
    "ScriptTimeoutError",
    "SecurityViolationError",
]



class ModHostError(Exception):
    """Base class for every error raised by modhost itself."""
    pass

# ---------- InvalidInput ----------

class InvalidInputError(ModHostError):
    pass



class InvalidSourceURL(InvalidInputError):
    def __init__(self, url: str, reason: str = "cannot parse owner/repository"):
        super().__init__(f"Invalid source URL '{url}': {reason}")
        self.url = url



class InvalidManifestError(InvalidInputError):
    def __init__(self, path: object, reason: str):
        super().__init__(f"Invalid manifest '{path}': {reason}")
        self.path = path
        self.reason = reason



class InvalidPluginArchive(InvalidInputError):
    def __init__(self, path: object, reason: str):
        super().__init__(f"Invalid plugin archive '{path}': {reason}")
        self.path = path
        self.reason = reason

# ---------- NotFound ----------

class NotFoundError(ModHostError):
    pass



class BucketNotFound(NotFoundError):
    def __init__(self, name: str):
        super().__init__(f"Bucket '{name}' does not exist")
        self.name = name



class PackageNotFound(NotFoundError):
    def __init__(self, name: str, where: str = ""):
        super().__init__(f"Package '{name}' not found{f' in {where}' if where else ''}")
        self.name = name

# ---------- Conflict ----------

class ConflictError(ModHostError):
    pass



class DuplicateBucket(ConflictError):
    def __init__(self, name: str):
        super().__init__(f"Bucket '{name}' already exists")
        self.name = name



class ReservedNameError(ConflictError):
    def __init__(self, name: str):
        super().__init__(f"'{name}' is a reserved name and cannot be used as a package")
        self.name = name



class PackageAlreadyInstalled(ConflictError):
    def __init__(self, name: str):
        super().__init__(f"Package '{name}' is already installed")
        self.name = name

# ---------- ExternalToolFailure ----------

class ExternalToolError(ModHostError):
    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output



class CloneFailed(ExternalToolError):
    def __init__(self, url: str, output: str = ""):
        super().__init__(f"Failed to clone '{url}': {output.strip()[:200]}", output)
        self.url = url



class RequirementsInstallError(ExternalToolError):
    pass



class DownloadFailed(ExternalToolError):
    def __init__(self, url: str, reason: str = ""):
        super().__init__(f"Failed to download '{url}': {reason}", reason)
        self.url = url

# ---------- Timeout / Security ----------

class ScriptTimeoutError(ModHostError):
    def __init__(self, scriptPath: object, timeoutMs: int):
        super().__init__(f"Script '{scriptPath}' timed out after {timeoutMs}ms")
        self.scriptPath = scriptPath
        self.timeoutMs = timeoutMs



class SecurityViolationError(ModHostError):
    """Raised when a callback signal fails token/plugin validation or targets a denied method."""
    pass
