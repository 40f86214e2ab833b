import pytest
from unittest.mock import patch

from open_finance.scripts import common
from open_finance.client.exceptions import AuthenticationError


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch.object(common, "setup_logging"):
        yield


class TestRun:

    def test_success_exits_zero(self):
        async def main():
            return None

        with pytest.raises(SystemExit) as exc_info:
            common.run(main, "Example")

        assert exc_info.value.code == 0

    def test_client_error_exits_one(self):
        async def main():
            raise AuthenticationError("invalid_client", status_code=401)

        with pytest.raises(SystemExit) as exc_info:
            common.run(main, "Example")

        assert exc_info.value.code == 1

    def test_unexpected_error_exits_one(self):
        async def main():
            raise RuntimeError("boom")

        with pytest.raises(SystemExit) as exc_info:
            common.run(main, "Example")

        assert exc_info.value.code == 1

    def test_interrupt_exit_code(self):
        async def main():
            raise KeyboardInterrupt

        with pytest.raises(SystemExit) as exc_info:
            common.run(main, "Example", exit_on_interrupt=0)

        assert exc_info.value.code == 0
