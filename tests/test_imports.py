"""Basic import tests for the disktable package."""


def test_import_package() -> None:
    import disktable

    assert disktable.MountTable is not None
    assert isinstance(disktable.__version__, str)


def test_import_modules() -> None:
    from disktable import cli, enumeration, logging_utils, mounttable, rotational  # noqa: F401
