"""FFTT client for the federation's public XML web service."""

import asyncio
import logging
import secrets
import urllib.parse
from enum import Enum

import requests

from fftt.auth.interfaces import SessionStorage
from fftt.auth.signer import RequestSigner
from fftt.auth.storage import PROCESS_STORAGE
from fftt.core.exceptions import TransportError
from fftt.core.models import (
    ClubParameterType,
    IndividualResultType,
    OrganismType,
    ResultByDivisionType,
    ResultInfo,
    SearchTeamByClubType,
    TrialType,
)

logger = logging.getLogger(__name__)

Param = tuple[str, object] | None


class FFTTApiCaller:
    """Client for the FFTT ``pxml`` endpoints.

    Every public method maps one federation endpoint.  It builds a signed
    URL, issues a single GET and returns the raw XML text of the response.
    No parsing is performed: callers own the XML.

    Methods are coroutines.  The blocking :class:`requests.Session` call
    runs in a worker thread, so concurrent calls do not block the event
    loop and are independent of each other.

    Each request carries four authentication parameters:

    * ``serie``: the session identifier (see :meth:`initialize_user`).
    * ``tm`` / ``tmc``: timestamp and signature from
      :class:`~fftt.auth.signer.RequestSigner`.
    * ``id``: the application identifier.
    """

    BASE_URL = "https://www.fftt.com/mobile/pxml"
    SERIAL_CHARACTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    SERIAL_LENGTH = 15
    SERIAL_STORAGE_KEY = "userSerialFFTT"
    ALREADY_AUTHENTICATED = "Already authenticated"

    def __init__(
        self,
        password: str,
        app_id: str,
        storage: SessionStorage | None = None,
        session: requests.Session | None = None,
    ):
        """Initialise the client with the parameters issued by the FFTT.

        Args:
            password: The password delivered by the federation.
            app_id: The application identifier delivered by the federation.
            storage: Where the session identifier lives.  Defaults to a
                process-wide in-memory store.
            session: The HTTP session to send requests with.  A new
                :class:`requests.Session` is created when omitted.
        """
        self._signer = RequestSigner(password)
        self._app_id = app_id
        self._storage = storage if storage is not None else PROCESS_STORAGE
        self.session = session or requests.Session()
        self._serial: str | None = None

    @property
    def serial(self) -> str | None:
        """The session identifier in use, or ``None`` before any is known."""
        return self._serial

    # -------------------------
    # Session
    # -------------------------

    async def initialize_user(self) -> str:
        """Make sure a session identifier exists for this user.

        When the storage already holds an identifier, it is reused,
        written back, and :data:`ALREADY_AUTHENTICATED` is returned without
        contacting the backend.  Otherwise a fresh identifier is generated
        and registered with ``xml_initialisation.php``; it is written to
        the storage once that request went through.

        Returns:
            The XML answer of the initialisation endpoint, or
            :data:`ALREADY_AUTHENTICATED`.

        Raises:
            TransportError: If the initialisation request fails.  Nothing
                is stored in that case.
        """
        stored = self._storage.get(self.SERIAL_STORAGE_KEY) or ""
        if stored:
            self._serial = stored
            self._storage.set(self.SERIAL_STORAGE_KEY, stored)
            return self.ALREADY_AUTHENTICATED

        self._serial = self.generate_serial()
        logger.info("Registering new FFTT session %s", self._serial)
        xml = await self._request("/xml_initialisation.php")
        self._storage.set(self.SERIAL_STORAGE_KEY, self._serial)
        return xml

    @classmethod
    def generate_serial(cls) -> str:
        """Return a random 15-character ``A-Z0-9`` session identifier."""
        return "".join(
            secrets.choice(cls.SERIAL_CHARACTERS)
            for _ in range(cls.SERIAL_LENGTH)
        )

    # -------------------------
    # Clubs and organisms
    # -------------------------

    async def get_clubs_by_department(self, department: str) -> str:
        """Return every club of a department.

        Args:
            department: Department number (e.g. ``"75"``).
        """
        return await self._request("/xml_club_dep2.php", ("dep", department))

    async def get_organisms(
        self, type: OrganismType, parent_id: str | None = None
    ) -> str:
        """Return federation organisms of a given level.

        Args:
            type: The organism level.
            parent_id: When given, only children of that organism are
                returned.
        """
        return await self._request(
            "/xml_organisme.php",
            ("type", type),
            _optional("pere", parent_id),
        )

    async def get_clubs_by(self, value: str, type: ClubParameterType) -> str:
        """Search clubs by number, city, postcode or department.

        Args:
            value: The search term.
            type: Which field *value* is matched against.
        """
        return await self._request("/xml_club_b.php", (type.value, value))

    async def get_club_detail(
        self, club_no: str, team_id: str | None = None
    ) -> str:
        """Return the details of a club.

        Args:
            club_no: The club number.
            team_id: When given, the venue returned is the team's
                preferred one instead of the club default.
        """
        return await self._request(
            "/xml_club_detail.php",
            ("club", club_no),
            _optional("idequipe", team_id),
        )

    # -------------------------
    # Competitions
    # -------------------------

    async def get_trials_by_organism(
        self, organism_id: str, type: TrialType
    ) -> str:
        return await self._request(
            "/xml_epreuve.php", ("organisme", organism_id), ("type", type)
        )

    async def get_division_by_trial(
        self, organism_id: str, trial_id: str, type: TrialType
    ) -> str:
        return await self._request(
            "/xml_division.php",
            ("organisme", organism_id),
            ("epreuve", trial_id),
            ("type", type),
        )

    async def get_results_by_division(
        self,
        division_id: str,
        type: ResultByDivisionType,
        pool_id: str | None = None,
    ) -> str:
        """Return team results, ranking or team list of a division.

        Args:
            division_id: The division identifier.
            type: Which view of the division to return.
            pool_id: When given, the pool to report on.  Otherwise the
                backend answers for the first pool.
        """
        return await self._request(
            "/xml_result_equ.php",
            ("D1", division_id),
            ("action", type),
            ("auto", "1"),
            _optional("cx_pool", pool_id),
        )

    async def get_result_by_pool(self, pool_ids: list[str]) -> str:
        """Return the encounters of one or several pools.

        Args:
            pool_ids: Pool identifiers, sent ``|``-separated.
        """
        return await self._request(
            "/xml_rencontre_equ.php", ("poule", "|".join(pool_ids))
        )

    async def get_result_detail(self, result_info: ResultInfo) -> str:
        """Return the detailed sheet of one team encounter.

        Args:
            result_info: The ``lien`` values of the encounter, as returned
                by :meth:`get_result_by_pool` (see
                :meth:`ResultInfo.from_link`).
        """
        return await self._request(
            "/xml_chp_renc.php",
            ("is_retour", result_info.is_retour),
            ("phase", result_info.phase),
            ("res_1", result_info.res_1),
            ("res_2", result_info.res_2),
            ("renc_id", result_info.renc_id),
            ("equip_1", result_info.equip_1),
            ("equip_2", result_info.equip_2),
            ("equip_id1", result_info.equip_id1),
            ("equip_id2", result_info.equip_id2),
        )

    async def get_team_by_club(
        self, club_no: str, type: SearchTeamByClubType
    ) -> str:
        return await self._request(
            "/xml_equipe.php", ("numclu", club_no), ("type", type)
        )

    async def get_individual_result(
        self,
        type: IndividualResultType,
        trial_id: str,
        division_id: str,
        group_id: str | None = None,
    ) -> str:
        return await self._request(
            "/xml_result_indiv.php",
            ("action", type),
            ("epr", trial_id),
            ("res_division", division_id),
            _optional("cx_tableau", group_id),
        )

    async def get_criterium_ranking(self, division_id: str) -> str:
        """Return the overall ranking of a criterium division."""
        return await self._request(
            "/xml_res_cla.php", ("res_division", division_id)
        )

    # -------------------------
    # Players
    # -------------------------

    async def find_players_by(
        self,
        club_no: str | None = None,
        lastname: str | None = None,
        firstname: str | None = None,
    ) -> str:
        """Search players by club and/or name.

        The backend expects at least *club_no* or *lastname*; this is not
        checked locally.
        """
        return await self._request(
            "/xml_liste_joueur.php",
            _optional("club", club_no),
            _optional("nom", lastname),
            _optional("prenom", firstname),
        )

    async def find_spid_players_by(
        self,
        club_no: str | None = None,
        licence: str | None = None,
        lastname: str | None = None,
        firstname: str | None = None,
        valid: bool | None = None,
    ) -> str:
        """Search players in the SPID licence database.

        The backend expects at least *club_no*, *licence* or *lastname*;
        this is not checked locally.

        Args:
            club_no: Club number.
            licence: Licence number.
            lastname: Player last name.
            firstname: Player first name.
            valid: Restrict to validated (``True``) or non-validated
                (``False``) licences.  Sent whenever it is not ``None``.
        """
        return await self._request(
            "/xml_liste_joueur_o.php",
            _optional("club", club_no),
            _optional("nom", lastname),
            _optional("prenom", firstname),
            _optional("licence", licence),
            ("valid", valid) if valid is not None else None,
        )

    async def find_player_by_licence(self, licence: str) -> str:
        return await self._request("/xml_joueur.php", ("licence", licence))

    async def find_spid_player_by_licence(self, licence: str) -> str:
        return await self._request("/xml_licence.php", ("licence", licence))

    async def find_detailed_spid_players_by_licence(
        self, licence_or_club: str
    ) -> str:
        """Return SPID details of one licence, or of every player of a club.

        Args:
            licence_or_club: A licence number or a club number.
        """
        return await self._request(
            "/xml_licence_b.php", ("licence", licence_or_club)
        )

    async def find_detailed_spid_players_by_licence_for_girpe(
        self, licence_or_club: str
    ) -> str:
        """Same as :meth:`find_detailed_spid_players_by_licence`.

        Reserved to GIRPE applications by the federation.
        """
        return await self._request(
            "/xml_licence_c.php", ("licence", licence_or_club)
        )

    async def get_player_games_by_licence(self, licence: str) -> str:
        return await self._request(
            "/xml_partie_mysql.php", ("licence", licence)
        )

    async def get_spid_player_games_by_licence(self, licence: str) -> str:
        return await self._request("/xml_partie.php", ("numlic", licence))

    async def get_player_rank_history_by_licence(self, licence: str) -> str:
        return await self._request(
            "/xml_histo_classement.php", ("numlic", licence)
        )

    # -------------------------
    # News
    # -------------------------

    async def get_news(self) -> str:
        """Return the federation news feed."""
        return await self._request("/xml_new_actu.php")

    # -------------------------
    # Internal helpers
    # -------------------------

    def _current_serial(self) -> str:
        """Return the session identifier, loading it from storage if needed.

        An empty string is returned (and a warning logged) when no
        identifier exists yet; the backend then rejects the call.
        """
        if not self._serial:
            self._serial = self._storage.get(self.SERIAL_STORAGE_KEY) or None
        if not self._serial:
            logger.warning(
                "No FFTT session identifier; call initialize_user() first."
            )
            return ""
        return self._serial

    def build_url(self, path: str, *params: Param) -> str:
        """Return the signed URL for *path* and *params*.

        Args:
            path: Endpoint sub-path, e.g. ``"/xml_club_dep2.php"``.
            *params: ``(key, value)`` pairs appended in order.  ``None``
                entries are skipped.

        Returns:
            The full request URL.
        """
        timestamp, signature = self._signer.sign()
        url = (
            f"{self.BASE_URL}{path}"
            f"?serie={self._current_serial()}"
            f"&tm={timestamp}&tmc={signature}&id={self._app_id}"
        )
        for param in params:
            if param is None:
                continue
            key, value = param
            url += f"&{key}={_quote(value)}"
        return url

    async def _request(self, path: str, *params: Param) -> str:
        """Send one signed GET request and return the response body.

        Args:
            path: Endpoint sub-path.
            *params: ``(key, value)`` pairs; ``None`` entries are skipped.

        Returns:
            The response text, whatever the HTTP status.

        Raises:
            TransportError: If the request cannot be completed.
        """
        url = self.build_url(path, *params)
        logger.debug(
            "GET %s (%s)",
            path,
            ", ".join(p[0] for p in params if p is not None) or "no params",
        )
        try:
            response = await asyncio.to_thread(self.session.get, url)
        except requests.RequestException as e:
            logger.error("FFTT request to %s failed: %s", path, e)
            raise TransportError(
                f"Request to {path} failed: {e}", path=path
            ) from e
        logger.debug("GET %s -> HTTP %s", path, response.status_code)
        return response.text


def _optional(key: str, value: str | None) -> Param:
    """Return ``(key, value)`` when *value* is non-empty, else ``None``."""
    return (key, value) if value else None


def _quote(value: object) -> str:
    """Render a parameter value for the query string."""
    if isinstance(value, Enum):
        value = value.value
    elif isinstance(value, bool):
        value = "true" if value else "false"
    return urllib.parse.quote(str(value), safe="|")
