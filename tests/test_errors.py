import json
import logging

import requests
from web3.exceptions import ContractLogicError, TimeExhausted

from errors import AppError, SubmissionError, classify_exception
from observability import build_log_context, configure_logging, log_event


def test_classify_passes_app_errors_through():
    err = SubmissionError("boom", code="transaction_failed")
    assert classify_exception(err) is err


def test_classify_maps_library_exceptions():
    resp = requests.Response()
    resp.status_code = 502
    assert classify_exception(requests.HTTPError("bad gateway", response=resp)).data == {"status": 502}
    assert classify_exception(requests.Timeout()).code == "http_timeout"
    assert classify_exception(requests.ConnectionError()).code == "http_connection_error"
    assert classify_exception(ContractLogicError("execution reverted")).code == "contract_reverted"
    assert classify_exception(TimeExhausted()).code == "receipt_timeout"
    assert classify_exception(ValueError("x")).code == "invalid_value"
    assert classify_exception(RuntimeError("x")).code == "unknown_error"


def test_app_error_to_dict():
    err = AppError("code_x", "message", {"k": 1})
    assert err.to_dict() == {"code": "code_x", "message": "message", "data": {"k": 1}}
    assert str(err) == "message"


def test_log_event_emits_json(caplog):
    logger = configure_logging("debug", service_name="deploy_transact_test")
    logger.propagate = True
    try:
        with caplog.at_level(logging.DEBUG, logger="deploy_transact_test"):
            log_event("tx_built", ctx=build_log_context(component="x", unused=None), data={"nonce": 5})
        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["event"] == "tx_built"
        assert payload["ctx"] == {"component": "x"}
        assert payload["data"] == {"nonce": 5}
    finally:
        logger.propagate = False
        configure_logging()
