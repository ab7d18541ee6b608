import logging
import structlog
from structlog.testing import capture_logs

from core_stack import log


def test_format_placeholders():

    with capture_logs() as logs:
        log.info("Updating/Creating CloudFormation stack {}", "my-stack")

    assert logs[0]["event"] == "Updating/Creating CloudFormation stack my-stack"
    assert logs[0]["log_level"] == "info"


def test_format_mismatched_placeholders():

    with capture_logs() as logs:
        log.warning("Stack status:", "CREATE_IN_PROGRESS")

    assert logs[0]["event"] == "Stack status: CREATE_IN_PROGRESS"


def test_details_are_structured_fields():

    with capture_logs() as logs:
        log.error("Stack reconciliation failed - {}", "boom", details={"StackName": "my-stack"})

    assert logs[0]["details"] == {"StackName": "my-stack"}


def test_trace_is_debug():

    with capture_logs() as logs:
        log.trace("Entering core_stack.handler")

    assert logs[0]["log_level"] == "debug"
    assert logs[0]["trace"] is True


def test_identity_is_bound_and_reset():

    log.set_identity("my-stack")
    try:
        assert structlog.contextvars.get_contextvars()["identity"] == "my-stack"
    finally:
        log.reset_identity()

    assert "identity" not in structlog.contextvars.get_contextvars()


def test_setup_json(capsys):

    log.setup("DEBUG", json=True)
    log.debug("Stack '{}' does not exist", "my-stack")
    err = capsys.readouterr().err

    assert '"event": "Stack \'my-stack\' does not exist"' in err
    assert '"level": "debug"' in err


def test_setup_filters_below_level(capsys):

    log.setup("WARNING")
    log.info("Stack update complete")
    log.warning("Failed to read stack events for '{}'", "my-stack")
    err = capsys.readouterr().err

    assert "Stack update complete" not in err
    assert "Failed to read stack events for 'my-stack'" in err


def test_setup_leaves_stdlib_root_logger_alone():

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level

    log.setup("DEBUG")

    assert root.handlers == handlers
    assert root.level == level
