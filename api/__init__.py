"""HTTP interface for the invoice ledger: unified data/actions routes and public verification."""

from api.base import APIResponse, ErrorCodes, error_response, success_response
from api.app import build_services, create_app
