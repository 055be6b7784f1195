import hashlib

from conftest import API_HEADERS, b64, sender_headers


def instantiate(client, name="foo", **body):
    resp = client.post("/buckets", json={"bucket": name, **body}, headers=API_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()


def execute(client, sender, msg, bucket="foo"):
    return client.post(f"/buckets/{bucket}/execute", json=msg, headers=sender_headers(sender))


def query(client, msg, bucket="foo"):
    return client.post(f"/buckets/{bucket}/query", json=msg, headers=API_HEADERS)


def store(client, sender, data, bucket="foo", **fields):
    resp = execute(client, sender, {"store_object": {"data": b64(data), **fields}}, bucket=bucket)
    assert resp.status_code == 200, resp.text
    return resp.json()["id"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_instantiate_and_query_bucket(client):
    body = instantiate(client, "foo", limits={"max_objects": 3, "max_object_size": "1024"})
    assert body["name"] == "foo"
    assert body["limits"] == {
        "max_total_size": None,
        "max_objects": 3,
        "max_object_size": 1024,
        "max_object_pins": None,
    }
    assert body["pagination"] == {"max_page_size": 30, "default_page_size": 10}
    assert body["accepted_compression_algorithms"] == ["passthrough", "snappy", "lzma"]

    resp = query(client, {"bucket": {}})
    assert resp.status_code == 200
    assert resp.json()["stat"] == {"object_count": 0, "total_size": 0, "total_compressed_size": 0}


def test_instantiate_duplicate(client):
    instantiate(client, "foo")
    resp = client.post("/buckets", json={"bucket": "foo"}, headers=API_HEADERS)
    assert resp.status_code == 409
    assert resp.json()["error"] == "already_exists"


def test_instantiate_negative_limit(client):
    resp = client.post("/buckets", json={"bucket": "foo", "limits": {"max_objects": -1}}, headers=API_HEADERS)
    assert resp.status_code == 422


def test_list_buckets(client):
    instantiate(client, "b")
    instantiate(client, "a")
    resp = client.get("/buckets", headers=API_HEADERS)
    assert [b["name"] for b in resp.json()] == ["a", "b"]


def test_requires_api_key(client):
    assert client.get("/buckets").status_code == 401
    assert client.get("/buckets", headers={"X-Api-Key": "wrong"}).status_code == 401


def test_execute_requires_signed_sender(client):
    instantiate(client)
    msg = {"store_object": {"data": b64(b"hello")}}

    resp = client.post("/buckets/foo/execute", json=msg, headers=API_HEADERS)
    assert resp.status_code == 401

    headers = {**sender_headers("addr1"), "X-Sender": "addr2"}
    resp = client.post("/buckets/foo/execute", json=msg, headers=headers)
    assert resp.status_code == 401


def test_store_and_read_back(client):
    instantiate(client)
    data = b"hello objectarium " * 20
    object_id = store(client, "addr1", data, compression_algorithm="lzma")
    assert object_id == hashlib.sha256(data).hexdigest()

    resp = query(client, {"object": {"id": object_id}})
    assert resp.json() == {
        "id": object_id,
        "owner": "addr1",
        "is_pinned": False,
        "size": len(data),
        "compressed_size": resp.json()["compressed_size"],
        "compression_algorithm": "lzma",
    }
    assert resp.json()["compressed_size"] < len(data)

    resp = query(client, {"object_data": {"id": object_id}})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/octet-stream"
    assert resp.content == data


def test_sender_comes_from_headers_not_payload(client):
    instantiate(client)
    resp = execute(client, "addr1", {"store_object": {"data": b64(b"x"), "owner": "addr2"}})
    assert resp.status_code == 403
    assert resp.json()["error"] == "unauthorized"


def test_unknown_object(client):
    instantiate(client)
    resp = query(client, {"object": {"id": "deadbeef"}})
    assert resp.status_code == 404
    assert resp.json() == {"error": "not_found", "detail": "Object not found: deadbeef"}


def test_unknown_bucket(client):
    resp = query(client, {"bucket": {}}, bucket="nope")
    assert resp.status_code == 404


def test_unsupported_compression(client):
    instantiate(client)
    resp = execute(client, "addr1", {"store_object": {"data": b64(b"x"), "compression_algorithm": "zip"}})
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_input"


def test_malformed_message(client):
    instantiate(client)
    resp = execute(client, "addr1", {"store_object": {"data": b64(b"x")}, "pin_object": {"id": "x"}})
    assert resp.status_code == 422
    resp = query(client, {"everything": {}})
    assert resp.status_code == 422


def test_max_objects_over_http(client):
    instantiate(client, limits={"max_objects": 1})
    store(client, "addr1", b"A")

    resp = execute(client, "addr1", {"store_object": {"data": b64(b"B")}})
    assert resp.status_code == 413
    assert resp.json()["error"] == "limit_exceeded"
    assert query(client, {"bucket": {}}).json()["stat"]["object_count"] == 1


def test_object_pins(client):
    instantiate(client)
    object_id = store(client, "addr1", b"X")

    resp = execute(client, "addr1", {"pin_object": {"id": object_id}})
    assert resp.json() == {"action": "pin_object", "id": object_id}

    resp = query(client, {"object_pins": {"id": object_id}})
    body = resp.json()
    assert body["data"] == ["addr1"]
    assert body["page_info"]["has_next_page"] is False
    assert query(client, {"object": {"id": object_id}}).json()["is_pinned"] is True


def test_pin_twice_changes_nothing(client):
    instantiate(client)
    object_id = store(client, "addr1", b"X")
    execute(client, "addr1", {"pin_object": {"id": object_id}})
    before = query(client, {"object_pins": {"id": object_id}}).json()

    resp = execute(client, "addr1", {"pin_object": {"id": object_id}})
    assert resp.status_code == 200
    assert query(client, {"object_pins": {"id": object_id}}).json() == before


def test_forget_with_two_pinners(client):
    instantiate(client)
    object_id = store(client, "addr1", b"shared", pin=True)
    execute(client, "addr2", {"pin_object": {"id": object_id}})

    assert execute(client, "addr1", {"forget_object": {"id": object_id}}).status_code == 200
    assert query(client, {"object": {"id": object_id}}).status_code == 200

    assert execute(client, "addr2", {"unpin_object": {"id": object_id}}).status_code == 200
    assert query(client, {"object": {"id": object_id}}).json()["is_pinned"] is False

    assert execute(client, "addr2", {"forget_object": {"id": object_id}}).status_code == 403
    assert execute(client, "addr1", {"forget_object": {"id": object_id}}).status_code == 200
    assert query(client, {"object": {"id": object_id}}).status_code == 404
    assert query(client, {"bucket": {}}).json()["stat"]["object_count"] == 0


def test_objects_pagination(client):
    instantiate(client, pagination={"max_page_size": 3, "default_page_size": 2})
    ids = sorted(store(client, "addr1", bytes([i])) for i in range(5))

    page = query(client, {"objects": {}}).json()
    assert [o["id"] for o in page["data"]] == ids[:2]
    assert page["page_info"]["has_next_page"] is True

    page = query(client, {"objects": {"first": 3, "after": page["page_info"]["cursor"]}}).json()
    assert [o["id"] for o in page["data"]] == ids[2:]
    assert page["page_info"]["has_next_page"] is False

    resp = query(client, {"objects": {"first": 4}})
    assert resp.status_code == 400

    resp = query(client, {"objects": {"after": "%%%"}})
    assert resp.status_code == 400


def test_objects_filtered_by_owner(client):
    instantiate(client)
    store(client, "addr1", b"one")
    theirs = store(client, "addr2", b"two")

    page = query(client, {"objects": {"address": "addr2"}}).json()
    assert [o["id"] for o in page["data"]] == [theirs]
    assert page["page_info"]["cursor"] != ""


def test_empty_page(client):
    instantiate(client)
    page = query(client, {"objects": {}}).json()
    assert page == {"data": [], "page_info": {"has_next_page": False, "cursor": ""}}


def test_store_existing_content_is_rejected(client):
    instantiate(client)
    store(client, "addr1", b"hello")

    resp = execute(client, "addr2", {"store_object": {"data": b64(b"hello"), "pin": True}})
    assert resp.status_code == 409
    assert resp.json()["error"] == "already_exists"
    assert query(client, {"bucket": {}}).json()["stat"]["object_count"] == 1


def test_zero_page_size_is_rejected(client):
    instantiate(client)
    object_id = store(client, "addr1", b"X")

    assert query(client, {"objects": {"first": 0}}).status_code == 422
    assert query(client, {"object_pins": {"id": object_id, "first": 0}}).status_code == 422

    resp = client.post("/buckets", json={"bucket": "bar", "pagination": {"max_page_size": 0}}, headers=API_HEADERS)
    assert resp.status_code == 422
