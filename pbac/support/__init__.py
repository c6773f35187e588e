"""Support utilities shared across PBAC sub-packages."""

from pbac.support.logger import PbacLogger

__all__ = ["PbacLogger"]
