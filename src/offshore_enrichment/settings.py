from __future__ import annotations
import logging
from decimal import Decimal
from pathlib import Path

from pydantic_settings import BaseSettings
from pydantic import Field

logger = logging.getLogger("offshore-enrichment")

class EnrichmentSettings(BaseSettings):
    # Allowed drift of explicit LC percentages from 100 before they get normalised.
    lc_percent_tolerance: Decimal = Field(default=Decimal("0.01"), alias="LC_PERCENT_TOLERANCE")

    # Load vs discharge volumes within this percentage of the larger side reconcile cleanly.
    bulk_volume_tolerance_pct: Decimal = Field(default=Decimal("2.0"), alias="BULK_VOLUME_TOLERANCE_PCT")
    bulk_time_tolerance_hours: float = Field(default=24.0, alias="BULK_TIME_TOLERANCE_HOURS")

    # Fresh water, pounds per gallon
    default_fluid_density_ppg: Decimal = Field(default=Decimal("8.33"), alias="DEFAULT_FLUID_DENSITY_PPG")

    reference_path: Path | None = Field(default=None, alias="OFFSHORE_REFERENCE_PATH")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {"env_file": ".env", "extra": "ignore", "populate_by_name": True}

    def configure_logging(self) -> None:
        logging.basicConfig(
            level=self.log_level.upper(),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
        logger.info(
            "Enrichment thresholds → lc_tolerance=%s volume_tolerance=%s%% time_window=%sh",
            self.lc_percent_tolerance,
            self.bulk_volume_tolerance_pct,
            self.bulk_time_tolerance_hours,
        )
