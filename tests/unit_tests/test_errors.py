"""Unit tests for errors.py."""

import pytest

from dblog_transport.errors import ConfigurationError
from dblog_transport.errors import ConnectionAcquisitionError
from dblog_transport.errors import InsertError
from dblog_transport.errors import TransportError
from dblog_transport.errors import TranslationError


class TestErrorTaxonomy:
    """Tests for the transport error hierarchy."""

    @pytest.mark.parametrize(
        "error_class", [ConfigurationError, ConnectionAcquisitionError, InsertError, TranslationError]
    )
    def test_all_errors_are_transport_errors(self, error_class):
        assert issubclass(error_class, TransportError)

    def test_configuration_error_names_option(self):
        err = ConfigurationError("The database host is required", option="host")

        assert err.option == "host"
        assert str(err) == "The database host is required"

    def test_insert_error_keeps_driver_error(self):
        driver_error = RuntimeError("syntax error at or near")

        err = InsertError("insert failed", driver_error=driver_error)

        assert err.driver_error is driver_error
