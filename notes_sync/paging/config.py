"""Paging configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

from ..exceptions import ValidationError


@dataclass
class PagingConfig:
    """Configuration for a paging stream.

    Attributes:
        page_size: Notes requested per remote page and per window step
        prefetch_distance: How close to the window tail an access must be
            before more data is loaded
        enable_placeholders: Must stay False; windows never contain holes
        initial_load_size: Window size served when a stream (re)starts
    """

    page_size: int = 5
    prefetch_distance: int = 1
    enable_placeholders: bool = False
    initial_load_size: int = 5

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValidationError("page_size", "must be >= 1", str(self.page_size))
        if self.prefetch_distance < 0:
            raise ValidationError(
                "prefetch_distance", "must be >= 0", str(self.prefetch_distance)
            )
        if self.initial_load_size < 1:
            raise ValidationError(
                "initial_load_size", "must be >= 1", str(self.initial_load_size)
            )
        if self.enable_placeholders:
            raise ValidationError("enable_placeholders", "placeholders are not supported")

    @classmethod
    def from_env(cls) -> PagingConfig:
        """Create config from environment variables."""
        page_size = int(os.environ.get("NOTES_SYNC_PAGE_SIZE", "5"))
        return cls(
            page_size=page_size,
            prefetch_distance=int(os.environ.get("NOTES_SYNC_PREFETCH_DISTANCE", "1")),
            initial_load_size=int(os.environ.get("NOTES_SYNC_INITIAL_LOAD_SIZE", str(page_size))),
        )
