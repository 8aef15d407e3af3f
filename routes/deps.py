# ========================================================
# routes/deps.py — FastAPI dependencies backed by app.state
# ========================================================
from fastapi import Request

from db import Database


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_gateway(request: Request):
    return request.app.state.gateway


def get_poller(request: Request):
    return request.app.state.poller


def get_payout_runner(request: Request):
    return request.app.state.payout_runner


def get_settings(request: Request):
    return request.app.state.settings
