import requests
import os
from dotenv import load_dotenv

# Load .env file
load_dotenv()


BASE_URL = os.getenv("FEEDER_API_URL", "http://localhost:5000").rstrip("/")
TIMEOUT = int(os.getenv("API_TIMEOUT", "30"))


def _headers(access_token):
    return {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/json",
    }


def _get(access_token, path, params=None):
    url = f"{BASE_URL}{path}"
    response = requests.get(url, headers=_headers(access_token), params=params, timeout=TIMEOUT)
    response.raise_for_status()
    return response.json()


# --- Catalog ---
def get_regions(access_token):
    return _get(access_token, "/api/regions")


def get_business_hubs(access_token):
    return _get(access_token, "/api/businesshubs")


def get_feeders(access_token, params=None):
    """
    Fetch feeders with their business hub and region populated.

    Args:
        access_token (str): API bearer token
        params (dict): Optional filters (region, businessHub ids)

    Returns:
        list: Feeder documents
    """
    return _get(access_token, "/api/feeders", params=params)


# --- Readings ---
def get_feeder_readings(access_token, start_date, end_date):
    """
    Fetch every feeder reading dated within [start_date, end_date].

    Args:
        access_token (str): API bearer token
        start_date (str): ISO date, inclusive
        end_date (str): ISO date, inclusive

    Returns:
        list: Reading documents, each carrying its feeder id
    """
    params = {"startDate": start_date, "endDate": end_date}
    return _get(access_token, "/api/feeders/readings", params=params)
