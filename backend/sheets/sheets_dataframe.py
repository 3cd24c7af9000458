"""
DataFrame normalization helpers.
"""
from typing import Any, List, Tuple

import pandas as pd


def normalize_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize DataFrame: strip whitespace from headers and text cells, handle NaN values.
    """
    df = df.copy()
    df.columns = [str(col).strip() for col in df.columns]

    # Strip whitespace from string columns
    for col in df.columns:
        if df[col].dtype == "object" or pd.api.types.is_string_dtype(df[col]):
            df[col] = df[col].astype(str).str.strip()
            # Replace 'nan' strings with actual NaN
            df[col] = df[col].replace(["nan", "None", "<NA>", ""], pd.NA)

    return df


def dataframe_to_rows(df: pd.DataFrame) -> Tuple[List[str], List[List[Any]]]:
    """
    Split a DataFrame into a header row and cell rows ready for a sheet write.

    Missing values become empty cells.
    """
    header = [str(col) for col in df.columns]
    rows = [
        ["" if pd.isna(value) else value for value in record]
        for record in df.itertuples(index=False, name=None)
    ]
    return header, rows
