"""Unit tests for FFTTApiCaller.

The HTTP session is a MagicMock, so no real requests are made.  Coroutines
are driven with ``asyncio.run``.
"""

import asyncio
import urllib.parse
from unittest.mock import MagicMock

import pytest
import requests

from fftt.auth.signer import sign_timestamp
from fftt.auth.storage import FileSessionStorage, MemorySessionStorage
from fftt.client import FFTTApiCaller
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

SERIAL = "ABCDEFGHIJ12345"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def http():
    session = MagicMock()
    session.get.return_value = MagicMock(status_code=200, text="<liste/>")
    return session


@pytest.fixture()
def storage():
    return MemorySessionStorage()


@pytest.fixture()
def caller(http, storage):
    storage.set(FFTTApiCaller.SERIAL_STORAGE_KEY, SERIAL)
    return FFTTApiCaller("secret", "123", storage=storage, session=http)


def _sent_url(http) -> str:
    """Return the URL of the single GET issued on *http*."""
    http.get.assert_called_once()
    return http.get.call_args.args[0]


def _split(url: str) -> tuple[str, list[tuple[str, str]]]:
    """Return the path and the ordered query pairs of *url*."""
    parts = urllib.parse.urlsplit(url)
    return parts.path, urllib.parse.parse_qsl(
        parts.query, keep_blank_values=True
    )


def _endpoint_params(url: str) -> list[tuple[str, str]]:
    """Return the query pairs that follow the four auth parameters."""
    return _split(url)[1][4:]


# ---------------------------------------------------------------------------
# Request executor
# ---------------------------------------------------------------------------


def test_club_by_department_end_to_end(caller, http):
    xml = asyncio.run(caller.get_clubs_by_department("75"))

    assert xml == "<liste/>"
    path, pairs = _split(_sent_url(http))
    assert path == "/mobile/pxml/xml_club_dep2.php"
    query = dict(pairs)
    assert query["dep"] == "75"
    for key in ("serie", "tm", "tmc", "id"):
        assert query[key]
    assert query["serie"] == SERIAL
    assert query["id"] == "123"
    assert query["tmc"] == sign_timestamp(query["tm"], "secret")


def test_auth_parameters_come_first_in_order(caller, http):
    asyncio.run(caller.get_news())
    url = _sent_url(http)
    assert url.startswith(
        "https://www.fftt.com/mobile/pxml/xml_new_actu.php?serie="
    )
    keys = [k for k, _ in _split(url)[1]]
    assert keys == ["serie", "tm", "tmc", "id"]


def test_omitted_optional_parameter_is_absent(caller, http):
    asyncio.run(caller.get_club_detail("08750010"))
    url = _sent_url(http)
    assert _endpoint_params(url) == [("club", "08750010")]
    assert "idequipe" not in url


def test_empty_optional_parameter_is_absent(caller, http):
    asyncio.run(caller.get_organisms(OrganismType.LEAGUE, parent_id=""))
    assert _endpoint_params(_sent_url(http)) == [("type", "L")]


def test_values_are_percent_encoded(caller, http):
    asyncio.run(caller.find_players_by(lastname="Le Gall", firstname="Zoé"))
    url = _sent_url(http)
    assert "&nom=Le%20Gall" in url
    assert _endpoint_params(url) == [("nom", "Le Gall"), ("prenom", "Zoé")]


def test_http_error_status_still_returns_body(caller, http):
    http.get.return_value = MagicMock(status_code=500, text="<erreur/>")
    assert asyncio.run(caller.get_news()) == "<erreur/>"


def test_transport_failure_raises_without_value(caller, http):
    cause = requests.ConnectionError("unreachable")
    http.get.side_effect = cause
    with pytest.raises(TransportError) as excinfo:
        asyncio.run(caller.get_clubs_by_department("75"))
    assert excinfo.value.__cause__ is cause
    assert excinfo.value.path == "/xml_club_dep2.php"
    http.get.assert_called_once()


def test_each_call_is_signed_afresh(caller, http):
    asyncio.run(caller.get_news())
    asyncio.run(caller.get_news())
    assert http.get.call_count == 2


def test_serial_is_loaded_from_storage(http, storage):
    storage.set(FFTTApiCaller.SERIAL_STORAGE_KEY, SERIAL)
    caller = FFTTApiCaller("secret", "123", storage=storage, session=http)
    assert caller.serial is None
    asyncio.run(caller.get_news())
    assert dict(_split(_sent_url(http))[1])["serie"] == SERIAL


def test_missing_serial_sends_empty_serie(http, storage):
    caller = FFTTApiCaller("secret", "123", storage=storage, session=http)
    asyncio.run(caller.get_news())
    assert dict(_split(_sent_url(http))[1])["serie"] == ""


# ---------------------------------------------------------------------------
# Session initializer
# ---------------------------------------------------------------------------


class TestInitializeUser:
    def test_generates_serial_and_calls_backend(self, http, storage):
        caller = FFTTApiCaller("secret", "123", storage=storage, session=http)
        http.get.return_value = MagicMock(status_code=200, text="<init/>")

        assert asyncio.run(caller.initialize_user()) == "<init/>"

        path, pairs = _split(_sent_url(http))
        assert path == "/mobile/pxml/xml_initialisation.php"
        serial = dict(pairs)["serie"]
        assert len(serial) == 15
        assert set(serial) <= set(FFTTApiCaller.SERIAL_CHARACTERS)
        assert caller.serial == serial
        assert storage.get(FFTTApiCaller.SERIAL_STORAGE_KEY) == serial

    def test_second_call_skips_network(self, http, storage):
        caller = FFTTApiCaller("secret", "123", storage=storage, session=http)
        asyncio.run(caller.initialize_user())
        answer = asyncio.run(caller.initialize_user())

        assert answer == FFTTApiCaller.ALREADY_AUTHENTICATED
        http.get.assert_called_once()

    def test_existing_serial_is_reused_and_rewritten(self, http):
        storage = MagicMock()
        storage.get.return_value = SERIAL
        caller = FFTTApiCaller("secret", "123", storage=storage, session=http)

        answer = asyncio.run(caller.initialize_user())

        assert answer == FFTTApiCaller.ALREADY_AUTHENTICATED
        assert caller.serial == SERIAL
        storage.set.assert_called_once_with(
            FFTTApiCaller.SERIAL_STORAGE_KEY, SERIAL
        )
        http.get.assert_not_called()

    def test_failed_initialisation_stores_nothing(self, http, storage):
        http.get.side_effect = requests.Timeout("slow")
        caller = FFTTApiCaller("secret", "123", storage=storage, session=http)
        with pytest.raises(TransportError):
            asyncio.run(caller.initialize_user())
        assert storage.get(FFTTApiCaller.SERIAL_STORAGE_KEY) is None

    def test_session_file_holding_null_starts_a_new_session(
        self, http, tmp_path
    ):
        path = tmp_path / "session.json"
        path.write_text("null", encoding="utf-8")
        storage = FileSessionStorage(path)
        caller = FFTTApiCaller("secret", "123", storage=storage, session=http)

        assert asyncio.run(caller.initialize_user()) == "<liste/>"

        http.get.assert_called_once()
        assert storage.get(FFTTApiCaller.SERIAL_STORAGE_KEY) == caller.serial

    def test_generated_serials_use_alphabet(self):
        for _ in range(50):
            serial = FFTTApiCaller.generate_serial()
            assert len(serial) == 15
            assert set(serial) <= set(FFTTApiCaller.SERIAL_CHARACTERS)


# ---------------------------------------------------------------------------
# Endpoint mapping
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("call", "path", "params"),
    [
        (
            lambda c: c.get_organisms(OrganismType.ZONE, parent_id="7"),
            "/xml_organisme.php",
            [("type", "Z"), ("pere", "7")],
        ),
        (
            lambda c: c.get_clubs_by("Lyon", ClubParameterType.CITY),
            "/xml_club_b.php",
            [("ville", "Lyon")],
        ),
        (
            lambda c: c.get_club_detail("08750010", team_id="42"),
            "/xml_club_detail.php",
            [("club", "08750010"), ("idequipe", "42")],
        ),
        (
            lambda c: c.get_trials_by_organism("105", TrialType.TEAM),
            "/xml_epreuve.php",
            [("organisme", "105"), ("type", "E")],
        ),
        (
            lambda c: c.get_division_by_trial(
                "105", "2012", TrialType.INDIVIDUAL
            ),
            "/xml_division.php",
            [("organisme", "105"), ("epreuve", "2012"), ("type", "I")],
        ),
        (
            lambda c: c.get_results_by_division(
                "4321", ResultByDivisionType.RESULTS
            ),
            "/xml_result_equ.php",
            [("D1", "4321"), ("action", ""), ("auto", "1")],
        ),
        (
            lambda c: c.get_results_by_division(
                "4321", ResultByDivisionType.RANKING, pool_id="9"
            ),
            "/xml_result_equ.php",
            [
                ("D1", "4321"),
                ("action", "classement"),
                ("auto", "1"),
                ("cx_pool", "9"),
            ],
        ),
        (
            lambda c: c.get_result_by_pool(["11"]),
            "/xml_rencontre_equ.php",
            [("poule", "11")],
        ),
        (
            lambda c: c.get_result_by_pool(["11", "12", "13"]),
            "/xml_rencontre_equ.php",
            [("poule", "11|12|13")],
        ),
        (
            lambda c: c.get_team_by_club(
                "08750010", SearchTeamByClubType.FEMALE
            ),
            "/xml_equipe.php",
            [("numclu", "08750010"), ("type", "F")],
        ),
        (
            lambda c: c.get_individual_result(
                IndividualResultType.GROUP, "88", "99"
            ),
            "/xml_result_indiv.php",
            [("action", "poule"), ("epr", "88"), ("res_division", "99")],
        ),
        (
            lambda c: c.get_individual_result(
                IndividualResultType.GAMES, "88", "99", group_id="3"
            ),
            "/xml_result_indiv.php",
            [
                ("action", "partie"),
                ("epr", "88"),
                ("res_division", "99"),
                ("cx_tableau", "3"),
            ],
        ),
        (
            lambda c: c.get_criterium_ranking("99"),
            "/xml_res_cla.php",
            [("res_division", "99")],
        ),
        (
            lambda c: c.find_players_by(club_no="08750010"),
            "/xml_liste_joueur.php",
            [("club", "08750010")],
        ),
        (
            lambda c: c.find_spid_players_by(
                club_no="08750010",
                licence="7512345",
                lastname="MARTIN",
                firstname="Paul",
                valid=False,
            ),
            "/xml_liste_joueur_o.php",
            [
                ("club", "08750010"),
                ("nom", "MARTIN"),
                ("prenom", "Paul"),
                ("licence", "7512345"),
                ("valid", "false"),
            ],
        ),
        (
            lambda c: c.find_spid_players_by(lastname="MARTIN"),
            "/xml_liste_joueur_o.php",
            [("nom", "MARTIN")],
        ),
        (
            lambda c: c.find_player_by_licence("7512345"),
            "/xml_joueur.php",
            [("licence", "7512345")],
        ),
        (
            lambda c: c.find_spid_player_by_licence("7512345"),
            "/xml_licence.php",
            [("licence", "7512345")],
        ),
        (
            lambda c: c.find_detailed_spid_players_by_licence("08750010"),
            "/xml_licence_b.php",
            [("licence", "08750010")],
        ),
        (
            lambda c: c.find_detailed_spid_players_by_licence_for_girpe(
                "7512345"
            ),
            "/xml_licence_c.php",
            [("licence", "7512345")],
        ),
        (
            lambda c: c.get_player_games_by_licence("7512345"),
            "/xml_partie_mysql.php",
            [("licence", "7512345")],
        ),
        (
            lambda c: c.get_spid_player_games_by_licence("7512345"),
            "/xml_partie.php",
            [("numlic", "7512345")],
        ),
        (
            lambda c: c.get_player_rank_history_by_licence("7512345"),
            "/xml_histo_classement.php",
            [("numlic", "7512345")],
        ),
        (lambda c: c.get_news(), "/xml_new_actu.php", []),
    ],
)
def test_endpoint_mapping(caller, http, call, path, params):
    assert asyncio.run(call(caller)) == "<liste/>"
    url = _sent_url(http)
    assert _split(url)[0] == "/mobile/pxml" + path
    assert _endpoint_params(url) == params


def test_result_detail_sends_every_link_field(caller, http):
    info = ResultInfo.from_link(
        "renc_id=101&is_retour=1&phase=2&res_1=8&res_2=6"
        "&equip_1=PARIS+TT+1&equip_2=LYON+2&equip_id1=11&equip_id2=22"
    )
    asyncio.run(caller.get_result_detail(info))
    assert _endpoint_params(_sent_url(http)) == [
        ("is_retour", "1"),
        ("phase", "2"),
        ("res_1", "8"),
        ("res_2", "6"),
        ("renc_id", "101"),
        ("equip_1", "PARIS TT 1"),
        ("equip_2", "LYON 2"),
        ("equip_id1", "11"),
        ("equip_id2", "22"),
    ]


def test_default_storage_is_shared_across_instances(http):
    from fftt.auth.storage import PROCESS_STORAGE

    PROCESS_STORAGE.clear()
    try:
        first = FFTTApiCaller("secret", "123", session=http)
        asyncio.run(first.initialize_user())
        second = FFTTApiCaller("secret", "123", session=http)
        answer = asyncio.run(second.initialize_user())
        assert answer == FFTTApiCaller.ALREADY_AUTHENTICATED
        assert second.serial == first.serial
    finally:
        PROCESS_STORAGE.clear()
