"""Test fixtures and enums for unit testing."""

from enum import Enum


class Docket(str, Enum):
    """Congress docket numbers used across tests."""

    BILL = "121/000012"
    PROPOSAL = "122/000045"
    DECREE = "130/000003"
    AMNESTY = "122/000019"
    SENATE_LAW = "621/000045"


class Situation(str, Enum):
    """Typical current-situation texts of Congress exports."""

    CLOSED = "Cerrado"
    COMMITTEE = "Comisión de Justicia Enmiendas"
    PLENARY = "Pleno Toma en consideración"
    SENATE = "Senado"
