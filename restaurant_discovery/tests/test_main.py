from unittest.mock import patch

from restaurant_discovery.__main__ import main


@patch("restaurant_discovery.__main__.uvicorn.run")
def test_main_serves_the_app(mock_run, monkeypatch):
    monkeypatch.setenv("PORT", "9100")
    monkeypatch.delenv("HOST", raising=False)

    main()

    args, kwargs = mock_run.call_args
    assert args == ("restaurant_discovery.app:app",)
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 9100
