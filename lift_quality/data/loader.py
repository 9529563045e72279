# lift_quality/data/loader.py
"""Delimited-text loading with explicit missing-value tokens.

The loader accepts a filesystem path or an already-open buffer, checks
that every data row has as many fields as the header, and returns a
DataFrame in which every cell equal to one of the missing tokens is NaN.
"""

import csv
import io
from pathlib import Path
from typing import IO, Iterable, Optional, Union

import pandas as pd

from ..config.pipeline_config import DEFAULT_NA_TOKENS
from ..utils.logger import get_logger
from ..utils.error_handling import stage_context
from ..utils.exceptions import FormatError, SourceReadError

logger = get_logger(__name__)

SourceType = Union[str, Path, IO[str], IO[bytes]]


class DatasetLoader:
    """Reads a sensor table from a path or buffer.

    Example:
        >>> loader = DatasetLoader(na_tokens=("NA", "", "#DIV/0!"))
        >>> df = loader.load("pml-training.csv")
        >>> df.shape
        (19622, 160)
    """

    def __init__(
        self,
        na_tokens: Iterable[str] = DEFAULT_NA_TOKENS,
        delimiter: str = ",",
        encoding: str = "utf-8"
    ) -> None:
        """Initialize loader.

        Args:
            na_tokens: Exact cell values recorded as missing
            delimiter: Field delimiter
            encoding: Text encoding for paths and binary buffers
        """
        self.na_tokens = tuple(str(token) for token in na_tokens)
        self.delimiter = delimiter
        self.encoding = encoding

    def load(self, source: SourceType) -> pd.DataFrame:
        """Load a dataset.

        Args:
            source: Path to a delimited file or a readable text/binary buffer

        Returns:
            DataFrame with missing tokens mapped to NaN

        Raises:
            SourceReadError: If the source cannot be opened or read
            FormatError: If the header is missing or a row has the wrong field count
        """
        with stage_context("loader", default_error=FormatError, source=_describe(source)):
            text = self._read_text(source)
            n_fields = self._check_field_counts(text, source)

            df = pd.read_csv(
                io.StringIO(text),
                sep=self.delimiter,
                na_values=list(self.na_tokens),
                keep_default_na=False,
                low_memory=False,
            )

            if df.shape[1] != n_fields:
                raise FormatError(
                    f"Parsed {df.shape[1]} columns but the header names {n_fields}",
                    error_code="HEADER_MISMATCH",
                    context={"source": _describe(source)}
                )

        logger.info(f"Loaded {df.shape[0]} rows x {df.shape[1]} columns from {_describe(source)}")
        return df

    def _read_text(self, source: SourceType) -> str:
        try:
            if isinstance(source, (str, Path)):
                with open(source, "r", encoding=self.encoding, newline="") as f:
                    return f.read()

            content = source.read()
        except OSError as e:
            raise SourceReadError(
                f"Cannot read data source {_describe(source)}: {e}",
                error_code="SOURCE_UNREADABLE",
                context={"source": _describe(source)}
            ) from e
        except UnicodeDecodeError as e:
            raise FormatError(
                f"Data source is not valid {self.encoding} text",
                error_code="BAD_ENCODING",
                context={"source": _describe(source), "position": e.start}
            ) from e

        if isinstance(content, bytes):
            try:
                content = content.decode(self.encoding)
            except UnicodeDecodeError as e:
                raise FormatError(
                    f"Data source is not valid {self.encoding} text",
                    error_code="BAD_ENCODING",
                    context={"source": _describe(source), "position": e.start}
                ) from e
        return content

    def _check_field_counts(self, text: str, source: SourceType) -> int:
        """Return the header field count after checking every data row against it."""
        reader = csv.reader(io.StringIO(text, newline=""), delimiter=self.delimiter)

        header: Optional[list] = None
        n_rows = 0
        for row in reader:
            if not row:
                continue  # blank line
            if header is None:
                header = row
                continue
            n_rows += 1
            if len(row) != len(header):
                raise FormatError(
                    f"Line {reader.line_num} has {len(row)} fields, expected {len(header)}",
                    error_code="INCONSISTENT_ROW_LENGTH",
                    context={
                        "source": _describe(source),
                        "line": reader.line_num,
                        "expected_fields": len(header),
                        "actual_fields": len(row),
                    }
                )

        if header is None:
            raise FormatError(
                "Data source is empty (no header row)",
                error_code="EMPTY_SOURCE",
                context={"source": _describe(source)}
            )
        if n_rows == 0:
            raise FormatError(
                "Data source has a header but no data rows",
                error_code="NO_DATA_ROWS",
                context={"source": _describe(source)}
            )
        return len(header)


def _describe(source: SourceType) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    return str(getattr(source, "name", type(source).__name__))


def load_dataset(
    source: SourceType,
    na_tokens: Iterable[str] = DEFAULT_NA_TOKENS,
    delimiter: str = ","
) -> pd.DataFrame:
    """Load a delimited dataset, mapping ``na_tokens`` to NaN.

    Example:
        >>> df = load_dataset(io.StringIO("a,b\\n1,NA\\n"))
        >>> df['b'].isna().all()
        True
    """
    return DatasetLoader(na_tokens=na_tokens, delimiter=delimiter).load(source)
