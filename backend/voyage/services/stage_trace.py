"""Diagnostic record of the resolution stages attempted for one search."""

from dataclasses import asdict, dataclass, field


@dataclass(frozen=True)
class StageEntry:
    name: str
    status: int | str
    count: int


@dataclass
class StageTrace:
    """Append-only; returned to the client as ``meta.stage``."""
    entries: list[StageEntry] = field(default_factory=list)

    def record(self, name: str, status: int | str, count: int) -> StageEntry:
        entry = StageEntry(name=name, status=status, count=count)
        self.entries.append(entry)
        return entry

    def names(self) -> list[str]:
        return [e.name for e in self.entries]

    def to_list(self) -> list[dict]:
        return [asdict(e) for e in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)
