"""Parameter vocabularies accepted by the FFTT endpoints."""

import urllib.parse
from dataclasses import dataclass, fields
from enum import Enum


# ----------------------
# Organisms and clubs
# ----------------------


class OrganismType(str, Enum):
    """Level of a federation organism (``xml_organisme.php``)."""

    FEDERATION = "F"
    ZONE = "Z"
    LEAGUE = "L"
    DEPARTMENT = "D"


class ClubParameterType(str, Enum):
    """Search key used by ``xml_club_b.php``.

    The value is sent as the query parameter *name*; the search term is
    its value.
    """

    NUMBER = "numero"
    CITY = "ville"
    POSTCODE = "code"
    DEPARTMENT = "dep"


# ----------------------
# Competitions
# ----------------------


class TrialType(str, Enum):
    """Kind of competition (``epreuve``)."""

    TEAM = "E"
    INDIVIDUAL = "I"


class ResultByDivisionType(str, Enum):
    """``action`` code of ``xml_result_equ.php``."""

    RESULTS = ""
    RANKING = "classement"
    INITIAL = "initial"


class SearchTeamByClubType(str, Enum):
    """Team filter of ``xml_equipe.php``."""

    MALE = "M"
    FEMALE = "F"
    ALL = "A"


class IndividualResultType(str, Enum):
    """``action`` code of ``xml_result_indiv.php``."""

    GROUP = "poule"
    GAMES = "partie"
    RANKING = "classement"


# ----------------------
# ResultInfo
# ----------------------


@dataclass
class ResultInfo:
    """Identifies one team encounter for ``xml_chp_renc.php``.

    The pool-results endpoint (``xml_rencontre_equ.php``) returns these
    values packed in the ``lien`` element of every encounter;
    :meth:`from_link` unpacks them.
    """

    is_retour: str
    """``"1"`` for a second-leg encounter, ``"0"`` otherwise."""

    phase: str
    res_1: str
    res_2: str
    renc_id: str
    equip_1: str
    """Display name of the home team."""

    equip_2: str
    """Display name of the away team."""

    equip_id1: str
    equip_id2: str

    @classmethod
    def from_link(cls, lien: str) -> "ResultInfo":
        """Build a :class:`ResultInfo` from a ``lien`` query string.

        Keys absent from *lien* are set to an empty string.

        Args:
            lien: The raw ``lien`` value, e.g.
                ``"renc_id=123&is_retour=0&phase=1&res_1=8&..."``.

        Returns:
            A populated :class:`ResultInfo` instance.
        """
        params = urllib.parse.parse_qs(
            lien.lstrip("?"), keep_blank_values=True
        )
        return cls(
            **{f.name: params.get(f.name, [""])[0] for f in fields(cls)}
        )
