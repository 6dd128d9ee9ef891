import pytest
from pydantic import ValidationError

from services.subscriptions import MalformedForm, NewSubscriber, decode_form


def test_decode_form_percent_and_plus():
    fields = decode_form(b"name=bunny%20mcbunbun&email=mewsbunny%40mewbun.com")
    assert fields == {"name": "bunny mcbunbun", "email": "mewsbunny@mewbun.com"}
    assert decode_form(b"name=bunny+mcbunbun")["name"] == "bunny mcbunbun"


def test_decode_form_keeps_blank_values_and_first_duplicate():
    assert decode_form(b"name=&email=a") == {"name": "", "email": "a"}
    assert decode_form(b"name=first&name=second")["name"] == "first"
    assert decode_form(b"") == {}


@pytest.mark.parametrize("body", [
    b"name=%ZZ&email=mewsbunny%40mewbun.com",
    b"name=bunny%&email=mewsbunny%40mewbun.com",
    b"name=bunny%2",
    b"name=%FF&email=mewsbunny%40mewbun.com",
    b"name=%C3&email=mewsbunny%40mewbun.com",
    b"name=\xff",
])
def test_decode_form_rejects_malformed_bodies(body):
    with pytest.raises(MalformedForm):
        decode_form(body)


def test_decode_form_accepts_encoded_replacement_character():
    assert decode_form(b"name=%EF%BF%BD")["name"] == "\ufffd"


def test_new_subscriber_requires_non_empty_fields():
    with pytest.raises(ValidationError):
        NewSubscriber(name="", email="mewsbunny@mewbun.com")
    with pytest.raises(ValidationError):
        NewSubscriber(name="bunny", email="")
    with pytest.raises(ValidationError):
        NewSubscriber.model_validate({"name": "bunny"})


def test_new_subscriber_keeps_values_verbatim():
    subscriber = NewSubscriber(name=" bunny \ufffd ", email="not-an-email")
    assert subscriber.name == " bunny \ufffd "
    assert subscriber.email == "not-an-email"
