from carmcards import BotApp, CarmcardsConfig
from carmcards.config import DrawConfig, TradeConfig
from carmcards.domain.cards import Card
from carmcards.validators import validate_app


def test_validate_app_detects_foil_without_regular():
    app = BotApp(CarmcardsConfig(bot_token="test"))
    app.cards.card(Card(card_id=1, number=1, is_foil=True))
    issues = validate_app(app)
    assert "Foil card #1 has no regular variant." in issues


def test_validate_app_detects_bad_settings():
    config = CarmcardsConfig(
        bot_token="test",
        draw=DrawConfig(cooldown_seconds=-1, foil_chance=1.5, cards_per_page=0),
        trade=TradeConfig(invite_ttl_seconds=0),
    )
    issues = validate_app(BotApp(config))
    assert "No cards registered in application." in issues
    assert any("cooldown_seconds" in issue for issue in issues)
    assert any("foil_chance" in issue for issue in issues)
    assert any("cards_per_page" in issue for issue in issues)
    assert any("invite_ttl_seconds" in issue for issue in issues)


def test_validate_app_success():
    app = BotApp(CarmcardsConfig(bot_token="test"))
    app.cards.foil_pair(1, card_id=1, foil_card_id=2)
    assert validate_app(app) == []
