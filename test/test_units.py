import asyncio
import smtplib
import string
import pytest
import jwt
import httpx
from unittest.mock import AsyncMock, patch, MagicMock
from datetime import date, timedelta
from types import SimpleNamespace

from pydantic import ValidationError


# === Test doubles ===
class FakeGeocoder:
    """Resolves from a dict; unknown addresses fail. Optional per-address delay."""

    def __init__(self, known, delays=None):
        self.known = known
        self.delays = delays or {}
        self.calls = []

    async def geocode(self, address):
        self.calls.append(address)
        await asyncio.sleep(self.delays.get(address, 0))
        return self.known.get(address)


def make_response(payload=None, json_error=None):
    response = MagicMock()
    response.raise_for_status = MagicMock()
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


# === Test Fixtures ===
@pytest.fixture
def mock_db_session():
    session = AsyncMock()
    mock_result = MagicMock()
    session.execute = AsyncMock(return_value=mock_result)
    mock_result.scalars.return_value.first.return_value = None
    return session


@pytest.fixture
def itinerary():
    from app.database.models import Itinerary, Location, User
    owner = User(id=7, email="scout@example.com", name="Dana Scout", first_name="Dana", last_name="Scout")
    return Itinerary(
        id=1,
        user_id=owner.id,
        user=owner,
        title="Unit Day 3",
        date=date(2026, 11, 2),
        start_location={"name": "Base Camp", "address": "100 Studio Way", "time": "06:00"},
        end_location=None,
        is_shared=False,
        shared_with=[],
        locations=[
            Location(position=0, set_name="Diner", address="12 Main St", start_time="08:00", end_time="11:00",
                     contact_name="Sam", contact_phone="555-0100", notes="Park in back", status="pending"),
            Location(position=1, set_name="Rooftop", address="9 High St", start_time="13:00", end_time="17:00",
                     status=None),
        ],
    )


###############################################################
# 1. Unit Tests for `app/services/distance.py`
###############################################################
from app.services.distance import (
    Coordinates, haversine_km, road_distance_km, estimate_driving_minutes, format_duration, format_distance, estimate,
)

PARIS = Coordinates(48.8566, 2.3522)
LONDON = Coordinates(51.5074, -0.1278)


def test_haversine_same_point_is_zero():
    assert haversine_km(PARIS.lat, PARIS.lon, PARIS.lat, PARIS.lon) == 0


def test_haversine_is_symmetric():
    there = haversine_km(PARIS.lat, PARIS.lon, LONDON.lat, LONDON.lon)
    back = haversine_km(LONDON.lat, LONDON.lon, PARIS.lat, PARIS.lon)
    assert there == pytest.approx(back)


def test_haversine_known_distance():
    assert 340 < haversine_km(PARIS.lat, PARIS.lon, LONDON.lat, LONDON.lon) < 347


def test_road_distance_applies_winding_factor():
    assert road_distance_km(10) == pytest.approx(12.5)


def test_driving_minutes_at_average_speed():
    assert estimate_driving_minutes(40) == 60
    assert estimate_driving_minutes(0) == 0
    assert estimate_driving_minutes(1) == 2  # 1.5 minutes rounds up


def test_driving_minutes_monotonic():
    distances = [0, 0.1, 0.5, 1, 2.7, 10, 33.3, 80, 400]
    minutes = [estimate_driving_minutes(d) for d in distances]
    assert minutes == sorted(minutes)


@pytest.mark.parametrize("minutes, expected", [
    (0, "0 mins"),
    (1, "1 min"),
    (2, "2 mins"),
    (59, "59 mins"),
    (60, "1 hour 0 mins"),
    (61, "1 hour 1 min"),
    (90, "1 hour 30 mins"),
    (121, "2 hours 1 min"),
    (120, "2 hours 0 mins"),
])
def test_format_duration(minutes, expected):
    assert format_duration(minutes) == expected


def test_format_distance():
    assert format_distance(12345) == "12.3 km"
    assert format_distance(0) == "0.0 km"


def test_estimate_identical_points():
    result = estimate(PARIS, PARIS)
    assert result.distance_meters == 0
    assert result.duration_seconds == 0
    assert result.duration_text == "0 mins"


def test_estimate_whole_minutes_in_seconds():
    result = estimate(PARIS, LONDON)
    assert result.duration_seconds % 60 == 0
    assert result.distance_meters > 400_000


###############################################################
# 2. Unit Tests for `app/services/geocoding.py`
###############################################################
from app.services.geocoding import Geocoder


@patch('httpx.AsyncClient.get', new_callable=AsyncMock)
@pytest.mark.asyncio
async def test_geocode_returns_first_result(mock_get):
    mock_get.return_value = make_response([{"lat": "34.05", "lon": "-118.25"}, {"lat": "0", "lon": "0"}])
    geocoder = Geocoder(base_url="https://geo.test", user_agent="LocationScheduler-Test/1.0")

    result = await geocoder.geocode("Los Angeles City Hall")

    assert result == Coordinates(34.05, -118.25)
    mock_get.assert_awaited_once()
    args, kwargs = mock_get.call_args
    assert args[0] == "https://geo.test/search"
    assert kwargs["headers"]["User-Agent"] == "LocationScheduler-Test/1.0"
    assert kwargs["params"]["q"] == "Los Angeles City Hall"
    assert kwargs["params"]["limit"] == "1"


@patch('httpx.AsyncClient.get', new_callable=AsyncMock)
@pytest.mark.asyncio
async def test_geocode_no_results_is_none(mock_get):
    mock_get.return_value = make_response([])
    assert await Geocoder().geocode("nowhere at all") is None


@pytest.mark.parametrize("error", [
    httpx.ConnectError("connection refused"),
    httpx.ReadTimeout("timed out"),
])
@pytest.mark.asyncio
async def test_geocode_network_failure_is_none(error):
    with patch('httpx.AsyncClient.get', new_callable=AsyncMock, side_effect=error):
        assert await Geocoder().geocode("12 Main St") is None


@patch('httpx.AsyncClient.get', new_callable=AsyncMock)
@pytest.mark.asyncio
async def test_geocode_malformed_body_is_none(mock_get):
    mock_get.return_value = make_response(json_error=ValueError("not json"))
    assert await Geocoder().geocode("12 Main St") is None

    mock_get.return_value = make_response([{"latitude": 1}])
    assert await Geocoder().geocode("12 Main St") is None


@patch('httpx.AsyncClient.get', new_callable=AsyncMock)
@pytest.mark.asyncio
async def test_geocode_blank_address_makes_no_request(mock_get):
    assert await Geocoder().geocode("   ") is None
    mock_get.assert_not_called()


###############################################################
# 3. Unit Tests for `app/services/travel.py`
###############################################################
from app.services.travel import build_stops, calculate_segments, stops_for_itinerary, Stop, GEOCODE_FAILED
from app.services.errors import InsufficientLocations

KNOWN = {
    "X": Coordinates(34.0522, -118.2437),
    "Y": Coordinates(34.1016, -118.3267),
    "Z": Coordinates(34.0195, -118.4912),
}


def test_build_stops_skips_points_without_address():
    stops = build_stops(
        {"name": "Home", "address": ""},
        [SimpleNamespace(set_name="A", address=""),
         SimpleNamespace(set_name="B", address="X"),
         SimpleNamespace(set_name="C", address="Y")],
        None,
    )
    assert stops == [Stop("B", "X"), Stop("C", "Y")]


def test_build_stops_default_endpoint_names():
    stops = build_stops({"address": "X"}, [], {"address": "Y"})
    assert [s.name for s in stops] == ["Start Location", "End Location"]


def test_stops_for_itinerary_orders_start_stops_end(itinerary):
    itinerary.end_location = {"name": "Wrap", "address": "1 Lot Rd"}
    names = [s.name for s in stops_for_itinerary(itinerary)]
    assert names == ["Base Camp", "Diner", "Rooftop", "Wrap"]


@pytest.mark.asyncio
async def test_segments_exclude_stop_without_address():
    geocoder = FakeGeocoder(KNOWN)
    stops = build_stops(None, [{"set_name": "A", "address": None},
                               {"set_name": "B", "address": "X"},
                               {"set_name": "C", "address": "Y"}], None)

    report = await calculate_segments(stops, geocoder)

    assert len(report.segments) == 1
    assert (report.segments[0].from_name, report.segments[0].to_name) == ("B", "C")
    assert report.segments[0].ok


@pytest.mark.asyncio
async def test_failed_geocode_marks_segment_without_raising():
    geocoder = FakeGeocoder({"Y": KNOWN["Y"]})
    report = await calculate_segments([Stop("B", "unknown place"), Stop("C", "Y")], geocoder)

    assert len(report.segments) == 1
    assert report.segments[0].error == GEOCODE_FAILED
    assert report.segments[0].estimate is None
    assert report.total is None


@pytest.mark.asyncio
async def test_fewer_than_two_stops_makes_no_lookups():
    geocoder = FakeGeocoder(KNOWN)
    with pytest.raises(InsufficientLocations):
        await calculate_segments([Stop("Only", "X")], geocoder)
    with pytest.raises(InsufficientLocations):
        await calculate_segments([], geocoder)
    assert geocoder.calls == []


@pytest.mark.asyncio
async def test_segments_keep_input_order_regardless_of_completion():
    # The first address resolves last
    geocoder = FakeGeocoder(KNOWN, delays={"X": 0.05, "Y": 0.01, "Z": 0})
    stops = [Stop("one", "X"), Stop("two", "Y"), Stop("three", "Z"), Stop("four", "X")]

    report = await calculate_segments(stops, geocoder)

    assert [(s.from_name, s.to_name) for s in report.segments] == [
        ("one", "two"), ("two", "three"), ("three", "four")]
    # Repeated addresses are looked up once
    assert sorted(geocoder.calls) == ["X", "Y", "Z"]


@pytest.mark.asyncio
async def test_total_sums_only_successful_segments():
    geocoder = FakeGeocoder({"X": KNOWN["X"], "Y": KNOWN["Y"]})
    report = await calculate_segments([Stop("a", "X"), Stop("b", "Y"), Stop("c", "missing")], geocoder)

    ok, failed = report.segments
    assert ok.ok and not failed.ok
    assert report.total.distance_meters == ok.estimate.distance_meters
    assert report.total.duration_seconds == ok.estimate.duration_seconds


###############################################################
# 4. Unit Tests for `app/services/sharing.py`
###############################################################
from app.services.sharing import (
    enable_sharing, disable_sharing, public_projection, access_shared, merge_recipients, share_link,
)
from app.services.errors import ShareValidationError, ItineraryNotFound, IncorrectPassword
from app.utils.security import verify_password
from app.config import CLIENT_URL


@pytest.mark.asyncio
async def test_enable_sharing_rejects_short_password(itinerary):
    with pytest.raises(ShareValidationError, match="at least 4 characters"):
        await enable_sharing(itinerary, ["crew@example.com"], "abc")
    assert itinerary.is_shared is False
    assert itinerary.share_token is None


@pytest.mark.asyncio
async def test_enable_sharing_accepts_four_characters(itinerary):
    result = await enable_sharing(itinerary, ["crew@example.com"], "abcd")

    assert itinerary.is_shared is True
    assert len(result.token) == 64
    assert all(c in string.hexdigits for c in result.token)
    assert itinerary.share_password != "abcd"
    assert verify_password("abcd", itinerary.share_password)
    assert result.link == f"{CLIENT_URL}/shared/{result.token}"


@pytest.mark.parametrize("emails", [[], ["   "], ["not-an-email"], ["a b@example.com"], ["x@nodot"]])
@pytest.mark.asyncio
async def test_enable_sharing_rejects_bad_recipients(itinerary, emails):
    with pytest.raises(ShareValidationError):
        await enable_sharing(itinerary, emails, "secret")


@pytest.mark.asyncio
async def test_enable_sharing_twice_merges_recipients(itinerary):
    first = await enable_sharing(itinerary, ["a@example.com", "b@example.com"], "first-pass")
    second = await enable_sharing(itinerary, ["B@example.com", "c@example.com"], "second-pass")

    assert second.shared_with == ["a@example.com", "b@example.com", "c@example.com"]
    assert second.token == first.token
    assert verify_password("second-pass", itinerary.share_password)
    assert not verify_password("first-pass", itinerary.share_password)


def test_merge_recipients_dedupes_within_new_list():
    assert merge_recipients(None, ["x@example.com", "x@example.com"]) == ["x@example.com"]


@pytest.mark.asyncio
async def test_disable_sharing_is_idempotent(itinerary):
    await enable_sharing(itinerary, ["crew@example.com"], "abcd")
    disable_sharing(itinerary)
    disable_sharing(itinerary)

    assert itinerary.is_shared is False
    assert itinerary.share_token is None
    assert itinerary.share_password is None
    assert itinerary.shared_with == ["crew@example.com"]


@pytest.mark.asyncio
async def test_public_projection_is_allow_listed(itinerary):
    await enable_sharing(itinerary, ["crew@example.com"], "abcd")
    projected = public_projection(itinerary).model_dump(by_alias=True)

    assert set(projected) == {"title", "date", "startLocation", "endLocation", "locations", "owner"}
    assert projected["owner"] == {"name": "Dana Scout", "email": "scout@example.com"}
    assert set(projected["locations"][0]) == {
        "setName", "address", "startTime", "endTime", "contactName", "contactPhone", "notes", "status"}
    assert projected["locations"][1]["status"] == "pending"
    flat = str(projected)
    assert itinerary.share_token not in flat
    assert itinerary.share_password not in flat


@pytest.mark.asyncio
async def test_access_shared_unknown_token(mock_db_session):
    with pytest.raises(ItineraryNotFound):
        await access_shared(mock_db_session, "f" * 64, "abcd")


@pytest.mark.asyncio
async def test_access_shared_wrong_password(mock_db_session, itinerary):
    await enable_sharing(itinerary, ["crew@example.com"], "abcd")
    mock_db_session.execute.return_value.scalars.return_value.first.return_value = itinerary

    with pytest.raises(IncorrectPassword):
        await access_shared(mock_db_session, itinerary.share_token, "wrong")


@pytest.mark.asyncio
async def test_access_shared_correct_password(mock_db_session, itinerary):
    result = await enable_sharing(itinerary, ["crew@example.com"], "abcd")
    mock_db_session.execute.return_value.scalars.return_value.first.return_value = itinerary

    projection = await access_shared(mock_db_session, result.token, "abcd")

    assert projection.title == "Unit Day 3"
    assert [loc.set_name for loc in projection.locations] == ["Diner", "Rooftop"]


@pytest.mark.asyncio
async def test_share_password_hashing_runs_in_threadpool(itinerary, mocker):
    async def run_inline(func, *args):
        return func(*args)

    pool = mocker.patch('app.services.sharing.run_in_threadpool', side_effect=run_inline)
    await enable_sharing(itinerary, ["crew@example.com"], "abcd")

    pool.assert_called_once()
    assert pool.call_args.args[1] == "abcd"
    assert verify_password("abcd", itinerary.share_password)


def test_share_link_format():
    assert share_link("abc123") == f"{CLIENT_URL}/shared/abc123"


###############################################################
# 5. Unit Tests for `app/services/mailer.py`
###############################################################
from app.services.mailer import Mailer, build_share_invitation
from app.services.errors import MailDeliveryError


def test_build_share_invitation_headers_and_body():
    msg = build_share_invitation(
        ["a@example.com", "b@example.com"], "Dana Scout", "Unit Day 3", date(2026, 11, 2),
        "http://client/shared/tok", "abcd", "See you at call time", sender="noreply@example.com",
    )
    assert msg["To"] == "a@example.com, b@example.com"
    assert msg["From"] == "noreply@example.com"
    assert "Unit Day 3" in msg["Subject"]
    text = msg.get_payload()[0].get_payload()
    assert "http://client/shared/tok" in text
    assert "Password: abcd" in text
    assert "See you at call time" in text


@pytest.mark.asyncio
async def test_mailer_without_host_only_logs():
    with patch('app.services.mailer.smtplib.SMTP') as mock_smtp:
        await Mailer(host=None).send_share_invitation(
            ["a@example.com"], "Dana", "Day", date(2026, 11, 2), "link", "abcd")
    mock_smtp.assert_not_called()


@pytest.mark.asyncio
async def test_mailer_sends_to_all_recipients():
    with patch('app.services.mailer.smtplib.SMTP') as mock_smtp:
        mailer = Mailer(host="smtp.test", port=587, username="user", password="pw", use_tls=True,
                        sender="noreply@example.com")
        await mailer.send_share_invitation(
            ["a@example.com", "b@example.com"], "Dana", "Day", date(2026, 11, 2), "link", "abcd")

    server = mock_smtp.return_value
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("user", "pw")
    sender, recipients, _ = server.sendmail.call_args[0]
    assert sender == "noreply@example.com"
    assert recipients == ["a@example.com", "b@example.com"]
    server.quit.assert_called_once()


@pytest.mark.asyncio
async def test_mailer_failure_raises_delivery_error():
    with patch('app.services.mailer.smtplib.SMTP') as mock_smtp:
        mock_smtp.return_value.sendmail.side_effect = smtplib.SMTPRecipientsRefused({})
        with pytest.raises(MailDeliveryError):
            await Mailer(host="smtp.test", use_tls=False).send_share_invitation(
                ["a@example.com"], "Dana", "Day", date(2026, 11, 2), "link", "abcd")


###############################################################
# 6. Unit Tests for `app/utils/security.py` and rate limiting
###############################################################
from app.utils.security import hash_password, create_access_token, decode_access_token, generate_share_token
from app.utils.rate_limiter import InMemoryRateLimiter, client_ip


def test_hash_and_verify_password():
    hashed = hash_password("my_correct_password")
    assert verify_password("my_correct_password", hashed) is True
    assert verify_password("wrong_password", hashed) is False
    assert verify_password("anything", None) is False
    assert verify_password("anything", "not-a-hash") is False


def test_create_and_decode_access_token():
    token = create_access_token(data={"sub": "42"})
    assert decode_access_token(token)["sub"] == "42"


def test_expired_access_token_rejected():
    token = create_access_token(data={"sub": "42"}, expires_delta=timedelta(seconds=-1))
    with pytest.raises(jwt.ExpiredSignatureError):
        decode_access_token(token)


def test_share_tokens_are_unique():
    tokens = {generate_share_token() for _ in range(50)}
    assert len(tokens) == 50


def test_rate_limiter_blocks_after_limit():
    limiter = InMemoryRateLimiter(max_requests=3)
    assert [limiter.is_allowed("1.2.3.4") for _ in range(4)] == [True, True, True, False]
    assert limiter.is_allowed("5.6.7.8") is True
    assert limiter.get_remaining("1.2.3.4") == 0
    limiter.reset()
    assert limiter.get_remaining("1.2.3.4") == 3


def test_rate_limiter_drops_expired_keys():
    limiter = InMemoryRateLimiter(max_requests=2, window=timedelta(minutes=1))
    for i in range(5):
        limiter.is_allowed(f"10.0.0.{i}")
    assert len(limiter.requests) == 5

    stale = limiter.requests["10.0.0.0"][0] - timedelta(minutes=2)
    for key in limiter.requests:
        limiter.requests[key] = [stale]
    limiter.is_allowed("10.0.0.9")

    assert list(limiter.requests) == ["10.0.0.9"]
    assert limiter.get_remaining("10.0.0.0") == 2
    assert "10.0.0.0" not in limiter.requests


def _request(peer, forwarded=None):
    headers = {"x-forwarded-for": forwarded} if forwarded else {}
    return SimpleNamespace(client=SimpleNamespace(host=peer), headers=headers)


def test_client_ip_ignores_forwarded_header_from_untrusted_peer():
    assert client_ip(_request("203.0.113.7", "10.0.0.1"), trusted_proxies=[]) == "203.0.113.7"
    assert client_ip(_request("203.0.113.7", "10.0.0.1"), trusted_proxies=["127.0.0.1"]) == "203.0.113.7"


def test_client_ip_behind_trusted_proxy_uses_rightmost_untrusted_hop():
    proxies = ["127.0.0.1", "10.1.1.1"]
    assert client_ip(_request("127.0.0.1", "6.6.6.6, 198.51.100.4, 10.1.1.1"), proxies) == "198.51.100.4"
    assert client_ip(_request("127.0.0.1"), proxies) == "127.0.0.1"


###############################################################
# 7. Unit Tests for `app/services/password_generator.py` and models
###############################################################
from app.services.password_generator import generate_password, password_strength, SYMBOLS
from app.models.itinerary import ItineraryCreate, LocationCreate
from app.models.user import UserCreate


def test_generated_password_has_each_selected_class():
    password = generate_password(16, uppercase=True, lowercase=True, numbers=True, symbols=True)
    assert len(password) == 16
    assert any(c.isupper() for c in password)
    assert any(c.islower() for c in password)
    assert any(c.isdigit() for c in password)
    assert any(c in SYMBOLS for c in password)


def test_generated_password_defaults_to_lowercase_and_clamps_length():
    password = generate_password(2, uppercase=False, lowercase=False, numbers=False, symbols=False)
    assert len(password) == 4
    assert password.islower() and password.isalpha()


@pytest.mark.parametrize("password, expected", [
    ("abcd", "Weak"),
    ("abcdEF12", "Medium"),
    ("abcdEF12!@#$", "Strong"),
])
def test_password_strength(password, expected):
    assert password_strength(password) == expected


def test_itinerary_create_rejects_blank_title():
    with pytest.raises(ValidationError):
        ItineraryCreate(title="   ", date="2026-11-02")


def test_location_status_defaults_to_pending():
    loc = LocationCreate(setName="Diner", address="12 Main St", status=None)
    assert loc.status == "pending"
    with pytest.raises(ValidationError):
        LocationCreate(setName="Diner", address="12 Main St", status="cancelled")


def test_usercreate_password_too_short():
    with pytest.raises(ValidationError):
        UserCreate(name="Dana", email="dana@example.com", password="abc")
