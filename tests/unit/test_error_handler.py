from photo_share_upload.models import ErrorLevel, ProcessError
from photo_share_upload.utils.error_handler import ErrorHandler


def test_error_handler_levels() -> None:
    handler = ErrorHandler()
    handler.add(ProcessError(code="I-001", level=ErrorLevel.INFO, message="ok"))
    handler.add_warning(code="W-LISTING", message="listing_failed: transient: HTTP 503")
    handler.add_fatal(code="E-PERMANENT", message="rejected: HTTP 400", item_id="IMG_1.jpg")

    assert len(handler.get_by_level(ErrorLevel.INFO)) == 1
    assert len(handler.get_by_level(ErrorLevel.RECOVERABLE)) == 1
    fatal = handler.get_by_level(ErrorLevel.FATAL)
    assert fatal[0].item_id == "IMG_1.jpg"
    assert handler.to_dicts()[2]["code"] == "E-PERMANENT"

    handler.clear()
    assert handler.errors == []
