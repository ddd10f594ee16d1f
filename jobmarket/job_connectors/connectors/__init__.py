from jobmarket.job_connectors.connectors.base import BaseConnector
from jobmarket.job_connectors.connectors.france_travail import FranceTravailConnector

__all__ = ["BaseConnector", "FranceTravailConnector"]
