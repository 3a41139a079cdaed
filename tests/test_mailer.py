import json
import threading

import httpx
import pytest

from perfreview.core.clock import Clock
from perfreview.core.config import Settings
from perfreview.core.outbox import InlineOutbox, Outbox, ThreadPoolOutbox
from perfreview.services import emails
from perfreview.services.mailer import LogMailer, Mailer, ResendMailer, build_mailer, split_recipients


def _mailer(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ResendMailer(api_key="re_test", sender="Reviews <reviews@local.test>", client=client)


def test_split_recipients():
    assert split_recipients("a@x.test, b@x.test,,") == ["a@x.test", "b@x.test"]
    assert split_recipients(["a@x.test", " "]) == ["a@x.test"]


def test_resend_posts_grouped_recipients():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "email_1"})

    assert _mailer(handler).send("a@x.test,b@x.test", "Hello", "<p>hi</p>") is True
    assert seen["auth"] == "Bearer re_test"
    assert seen["body"]["to"] == ["a@x.test", "b@x.test"]
    assert seen["body"]["from"] == "Reviews <reviews@local.test>"


def test_resend_failures_return_false():
    assert _mailer(lambda request: httpx.Response(422, json={"message": "bad"})).send("a@x.test", "s", "h") is False

    def unreachable(request):
        raise httpx.ConnectError("no route", request=request)

    assert _mailer(unreachable).send("a@x.test", "s", "h") is False
    # nothing to send to
    assert _mailer(lambda request: httpx.Response(200)).send(" , ", "s", "h") is False


def test_build_mailer_without_key_logs_only():
    assert isinstance(build_mailer(Settings(RESEND_API_KEY=None)), LogMailer)
    assert isinstance(build_mailer(Settings(RESEND_API_KEY="re_live")), ResendMailer)


def test_email_bodies_escape_names():
    mail = emails.review_assigned("<script>Eve</script>", "Annual")
    assert "<script>" not in mail.html
    assert mail.subject == "New Performance Review Assigned: Annual"


def test_inline_outbox_swallows_failures():
    calls = []

    def boom():
        calls.append("boom")
        raise RuntimeError("smtp down")

    InlineOutbox().submit(boom, label="email")
    InlineOutbox().submit(calls.append, "after")
    assert calls == ["boom", "after"]


def test_thread_pool_outbox_runs_tasks():
    done = threading.Event()
    outbox = ThreadPoolOutbox(max_workers=1)
    outbox.submit(lambda: 1 / 0, label="broken")
    outbox.submit(done.set)
    outbox.shutdown(wait=True)
    assert done.is_set()

    # submitting after shutdown is dropped, not raised
    outbox.submit(done.clear)
    assert done.is_set()


@pytest.mark.parametrize("base", [Mailer, Outbox, Clock])
def test_collaborator_bases_are_abstract(base):
    with pytest.raises(TypeError):
        base()
