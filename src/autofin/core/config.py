"""Engine settings for autofin.

Provides data-driven configuration with sensible defaults. Settings are read
from a JSON file (``AUTOFIN_CONFIG`` or an explicit path) and deep-merged over
``DEFAULT_SETTINGS``.
"""

import json
import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "AUTOFIN_CONFIG"
DB_PATH_ENV_VAR = "AUTOFIN_DB_PATH"
STATEMENT_DIR_ENV_VAR = "AUTOFIN_STATEMENT_DIR"

DEFAULT_SETTINGS = {
    "$schema": "autofin_settings_v1",
    "version": "1.0",

    "statement": {
        "sheet_name": "Table 1",
        "period_cell": "A7",
        "account_number_cell": "A9",
        "account_name_cell": "A10",
        "currency_cell": "A11",
        "label_separator": " : ",
        "period_separator": " ຫາ ",
        "date_format": "%d/%m/%Y",
        "min_row_cells": 5,
        "columns": {
            "date": 0,
            "reference": 1,
            "memo": 2,
            "amount": 4
        }
    },

    "formula": {
        "haircut_rate": "0.8",
        "default_allowance_months": 12,
        "short_word_length": 3
    },

    "storage": {
        "db_path": "autofin.db",
        "statement_dir": "statements"
    }
}


@dataclass(frozen=True)
class StatementLayout:
    """Fixed layout of the statement export sheet."""
    sheet_name: str = "Table 1"
    period_cell: str = "A7"
    account_number_cell: str = "A9"
    account_name_cell: str = "A10"
    currency_cell: str = "A11"
    label_separator: str = " : "
    period_separator: str = " ຫາ "
    date_format: str = "%d/%m/%Y"
    min_row_cells: int = 5
    date_column: int = 0
    reference_column: int = 1
    memo_column: int = 2
    amount_column: int = 4


@dataclass(frozen=True)
class FormulaSettings:
    """Constants used by the income formula engine and classifier."""
    haircut_rate: Decimal = Decimal("0.8")
    default_allowance_months: Decimal = Decimal("12")
    short_word_length: int = 3


@dataclass(frozen=True)
class StorageSettings:
    """Where the database and uploaded statements live."""
    db_path: str = "autofin.db"
    statement_dir: str = "statements"


class EngineSettings:
    """
    Settings for one autofin process.

    Usage:
        settings = EngineSettings.load()
        layout = settings.statement
        rate = settings.formula.haircut_rate
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        """Initialize from a settings dictionary (defaults when omitted)."""
        data = data if data is not None else DEFAULT_SETTINGS
        self._raw = data

        statement = data.get("statement", {})
        columns = statement.get("columns", {})
        self.statement = StatementLayout(
            sheet_name=statement.get("sheet_name", "Table 1"),
            period_cell=statement.get("period_cell", "A7"),
            account_number_cell=statement.get("account_number_cell", "A9"),
            account_name_cell=statement.get("account_name_cell", "A10"),
            currency_cell=statement.get("currency_cell", "A11"),
            label_separator=statement.get("label_separator", " : "),
            period_separator=statement.get("period_separator", " ຫາ "),
            date_format=statement.get("date_format", "%d/%m/%Y"),
            min_row_cells=int(statement.get("min_row_cells", 5)),
            date_column=int(columns.get("date", 0)),
            reference_column=int(columns.get("reference", 1)),
            memo_column=int(columns.get("memo", 2)),
            amount_column=int(columns.get("amount", 4)),
        )

        formula = data.get("formula", {})
        self.formula = FormulaSettings(
            haircut_rate=Decimal(str(formula.get("haircut_rate", "0.8"))),
            default_allowance_months=Decimal(str(formula.get("default_allowance_months", 12))),
            short_word_length=int(formula.get("short_word_length", 3)),
        )

        storage = data.get("storage", {})
        self.storage = StorageSettings(
            db_path=os.environ.get(DB_PATH_ENV_VAR) or storage.get("db_path", "autofin.db"),
            statement_dir=os.environ.get(STATEMENT_DIR_ENV_VAR) or storage.get("statement_dir", "statements"),
        )

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "EngineSettings":
        """
        Load settings with fallback to defaults.

        Args:
            config_path: JSON settings file. Falls back to AUTOFIN_CONFIG.

        Returns:
            EngineSettings instance
        """
        data = DEFAULT_SETTINGS
        if config_path is None and os.environ.get(CONFIG_ENV_VAR):
            config_path = Path(os.environ[CONFIG_ENV_VAR])

        if config_path is not None:
            config_path = Path(config_path)
            if config_path.exists():
                try:
                    with open(config_path, encoding="utf-8") as f:
                        override = json.load(f)
                    data = cls._deep_merge(data, override)
                    logger.debug(f"Loaded settings from {config_path}")
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning(f"Failed to load settings from {config_path}: {e}")
            else:
                logger.warning(f"Settings file not found: {config_path}")

        return cls(data)

    @staticmethod
    def _deep_merge(base: Dict, override: Dict) -> Dict:
        """Deep merge two dictionaries, override takes precedence."""
        result = base.copy()
        for key, value in override.items():
            if key not in result:
                logger.warning(f"Ignoring unknown setting: {key}")
                continue
            if isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = EngineSettings._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._raw)
