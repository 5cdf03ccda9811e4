import relaypager.error as error


def test_connection_args_error():
    e = error.ConnectionArgsError("'first' and 'last' keys are not supported")
    assert str(e) == "Invalid connection arguments: 'first' and 'last' keys are not supported"
    assert isinstance(e, error.ClientError)
    assert isinstance(e, ValueError)
    assert e.status == 400
    assert e.phrase == "Bad Request"


def test_cursor_error():
    e = error.CursorError("invalid cursor: 'x'")
    assert isinstance(e, error.ClientError)
    assert isinstance(e, ValueError)
    assert e.status == 400


def test_error_status():
    assert error.Error.status == 500
    assert error.Error.phrase == "Internal Server Error"


def test_field_error():
    e = error.FieldError("not columns of users: nope")
    assert isinstance(e, error.ClientError)
    assert isinstance(e, ValueError)
    assert e.status == 400
