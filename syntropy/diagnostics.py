"""User facing diagnostics collected during resource operations."""

from dataclasses import dataclass, field
from typing import Iterator, List

from syntropy.exceptions import ResourceOperationError, SyntropyError

ERROR = "error"
WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    severity: str
    summary: str
    detail: str = ""
    address: str = ""

    def __str__(self) -> str:
        prefix = f"{self.address}: " if self.address else ""
        text = f"{self.severity.upper()}: {prefix}{self.summary}"
        if self.detail:
            text += f"\n  {self.detail}"
        return text


@dataclass
class Diagnostics:
    items: List[Diagnostic] = field(default_factory=list)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def add_error(self, summary: str, detail: str = "", address: str = "") -> None:
        self.items.append(Diagnostic(ERROR, summary, detail, address))

    def add_warning(self, summary: str, detail: str = "", address: str = "") -> None:
        self.items.append(Diagnostic(WARNING, summary, detail, address))

    def add_exception(self, error: SyntropyError, address: str = "") -> None:
        """Record an exception as an error diagnostic."""
        if isinstance(error, ResourceOperationError):
            self.add_error(error.message, error.detail, address)
        else:
            self.add_error(str(error), "", address)

    def has_error(self) -> bool:
        return bool(self.errors)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.items if d.severity == ERROR]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.items if d.severity == WARNING]
