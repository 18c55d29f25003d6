from typing import Any, Dict, List, Optional


class CertNormError(Exception):
    """Base class for every hard failure of a normalization run."""

    code = "CertNormError"

    def __init__(self, message: str, filename: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.filename = filename

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}: {self.message}"
        return self.message

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.filename:
            out["filename"] = self.filename
        if self.__cause__ is not None:
            out["cause"] = f"{type(self.__cause__).__name__}: {self.__cause__}"
        return out


class UnrecognizedFormatError(CertNormError):
    code = "UnrecognizedFormatError"


class UnreadableInputError(CertNormError):
    code = "UnreadableInputError"


class ExtractionError(CertNormError):
    code = "ExtractionError"


class ConversionError(CertNormError):
    code = "ConversionError"


class DecryptionError(CertNormError):
    code = "DecryptionError"


class PasswordUnavailableError(CertNormError):
    code = "PasswordUnavailableError"


class IncompleteMaterialError(CertNormError):
    code = "IncompleteMaterialError"

    def __init__(self, missing: List[str]) -> None:
        hint = ""
        if "private key" in missing:
            hint = " PKCS#7 and certificate-only files carry no key; pass the key as an additional file."
        super().__init__(f"missing {' and '.join(missing)} after processing all inputs.{hint}")
        self.missing = list(missing)

    def as_dict(self) -> Dict[str, Any]:
        out = super().as_dict()
        out["missing"] = self.missing
        return out


class KeyMismatchError(CertNormError):
    code = "KeyMismatchError"


class InvalidCertificateError(CertNormError):
    code = "InvalidCertificateError"


class InvalidKeyError(CertNormError):
    code = "InvalidKeyError"


class InstallError(CertNormError):
    code = "InstallError"
