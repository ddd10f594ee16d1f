from __future__ import annotations

import logging
from typing import Dict, List, Optional

from jobmarket.config.settings import Settings, get_settings
from jobmarket.job_connectors.connectors import BaseConnector, FranceTravailConnector
from jobmarket.job_connectors.logging_utils import get_logger, log_event
from jobmarket.job_connectors.regions import RegionRepository, StaticRegionRepository


def enabled_connector_names(settings: Optional[Settings] = None) -> List[str]:
    settings = settings or get_settings()
    return settings.connectors.enabled_names


def available_connectors(
    settings: Optional[Settings] = None,
    *,
    region_repository: Optional[RegionRepository] = None,
    logger: Optional[logging.Logger] = None,
) -> Dict[str, BaseConnector]:
    """Connectors that can be built from the current settings, keyed by name."""
    settings = settings or get_settings()
    logger = get_logger(logger)
    out: Dict[str, BaseConnector] = {}

    ft = settings.france_travail
    if ft.has_credentials:
        out[FranceTravailConnector.SOURCE_NAME] = FranceTravailConnector(
            ft.client_id,
            ft.client_secret or "",
            region_repository if region_repository is not None else StaticRegionRepository(),
            settings.connectors.to_connector_config(),
            token_url=ft.token_url,
            api_url=ft.api_url,
            scope=ft.scope,
            default_filters=ft.default_filters(),
            logger=logger,
        )
    else:
        log_event(
            logger,
            logging.WARNING,
            "connector_unconfigured",
            connector_name=FranceTravailConnector.SOURCE_NAME,
            missing="FRANCE_TRAVAIL_CLIENT_ID/FRANCE_TRAVAIL_CLIENT_SECRET",
        )
    return out
