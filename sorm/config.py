from dataclasses import dataclass


_QUOTE_CHARS = ("`", '"', "")


@dataclass(frozen=True)
class OrmConfig:
    quote_char: str = "`"
    # Embed the primary key of UPDATE statements as a literal instead of binding it
    inline_primary_literal: bool = False
    raise_on_error: bool = False
    emit_metrics: bool = True

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.quote_char not in _QUOTE_CHARS:
            raise ValueError(
                f"quote_char must be one of {_QUOTE_CHARS!r}, got {self.quote_char!r}"
            )

    def quote(self, identifier: str) -> str:
        return f"{self.quote_char}{identifier}{self.quote_char}"


DEFAULT_CONFIG = OrmConfig()
