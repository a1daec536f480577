def _headers(principal):
    return {"X-Dev-User": principal}


def _person(first_name, birth_year, relationship="Relative", **extra):
    body = {"first_name": first_name, "last_name": "Example", "relationship": relationship, "birth_year": birth_year}
    body.update(extra)
    return body


def _create_family(client, principal, name="Family", creation_type="own_family"):
    resp = client.post(
        "/v1/families",
        json={"name": name, "creation_type": creation_type, "creator": _person("Creator", "1950", "Self")},
        headers=_headers(principal),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health(client):
    resp = client.get("/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_requests_without_a_principal_are_rejected(client):
    assert client.get("/v1/families").status_code == 401


def test_family_setup_flow(client):
    headers = _headers("a@example.com")
    family = _create_family(client, "a@example.com", "Family A")
    assert family["current_step"] == "initialized"
    assert family["is_main_family"] is True

    setup = client.post(
        f"/v1/families/{family['id']}/creation-flow/parents",
        json={"mothers": [_person("Wife", "1960", "Wife 1", spouse_order=1)]},
        headers=headers,
    )
    assert setup.status_code == 201, setup.text
    body = setup.json()
    assert body["flow"]["current_step"] == "parent_setup"
    assert body["branches"][0]["branch_name"] == "First Wife's Branch"
    mother_id = body["mothers"][0]["id"]

    child = client.post(
        f"/v1/families/{family['id']}/members",
        json=_person("Kid", "1990", role="child", mother_id=mother_id),
        headers=headers,
    )
    assert child.status_code == 201, child.text
    assert child.json()["branch_id"] == body["branches"][0]["id"]

    tree = client.get(f"/v1/families/{family['id']}/tree", headers=headers)
    assert tree.status_code == 200
    assert tree.json()["statistics"] == {
        "total_members": 3,
        "total_branches": 1,
        "total_children": 1,
        "linked_members": 0,
    }
    assert tree.json()["mothers"][0]["children"][0]["first_name"] == "Kid"

    available = client.get(f"/v1/families/{family['id']}/available-mothers", headers=headers)
    assert available.json()["items"][0]["children_count"] == 1

    step = client.post(
        f"/v1/families/{family['id']}/creation-flow/steps", json={"step": "children_setup"}, headers=headers
    )
    assert step.json()["current_step"] == "children_setup"
    assert step.json()["progress_percentage"] == 67


def test_domain_errors_are_serialized(client):
    headers = _headers("a@example.com")
    family = _create_family(client, "a@example.com")

    setup = client.post(
        f"/v1/families/{family['id']}/creation-flow/parents",
        json={
            "mothers": [
                _person("Wife", "1960", spouse_order=1),
                _person("Wife", "1962", spouse_order=3),
            ]
        },
        headers=headers,
    )
    assert setup.status_code == 400
    assert setup.json()["error"]["code"] == "INVALID_SPOUSE_ORDER"
    assert setup.json()["error"]["kind"] == "validation_error"

    forbidden = client.get(f"/v1/families/{family['id']}/members", headers=_headers("b@example.com"))
    assert forbidden.status_code == 403
    assert forbidden.json()["error"]["code"] == "NOT_AUTHORIZED"

    missing = client.get("/v1/families/999", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "FAMILY_NOT_FOUND"

    duplicate = client.post(
        "/v1/families",
        json={"name": "Again", "creator": _person("Creator", "1950", "Self")},
        headers=headers,
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "DUPLICATE_MAIN_FAMILY"

    no_main = client.get("/v1/families/main", headers=_headers("nobody@example.com"))
    assert no_main.status_code == 404


def test_schema_rejects_malformed_input(client):
    headers = _headers("a@example.com")
    bad_year = client.post(
        "/v1/families",
        json={"name": "Family", "creator": _person("Creator", "19x0")},
        headers=headers,
    )
    assert bad_year.status_code == 422

    bad_code = client.post("/v1/links", json={"join_code": "short"}, headers=headers)
    assert bad_code.status_code == 422


def test_link_families_over_http(client):
    family_a = _create_family(client, "a@example.com", "Family A")
    family_b = _create_family(client, "b@example.com", "Family B")
    code = family_a["creator_join_code"]

    check = client.get(f"/v1/join-codes/{code}", headers=_headers("b@example.com"))
    assert check.json()["eligible_for_link"] is True
    assert check.json()["family_name"] == "Family A"

    link = client.post("/v1/links", json={"join_code": code}, headers=_headers("b@example.com"))
    assert link.status_code == 201, link.text
    assert link.json()["status"] == "active"
    assert link.json()["mirrored_members"] == {}

    again = client.post("/v1/links", json={"join_code": code}, headers=_headers("b@example.com"))
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "JOIN_CODE_ALREADY_USED"

    listed = client.get(f"/v1/families/{family_b['id']}/links", headers=_headers("b@example.com"))
    assert [item["id"] for item in listed.json()["items"]] == [link.json()["id"]]

    deactivated = client.post(f"/v1/links/{link.json()['id']}/deactivate", headers=_headers("a@example.com"))
    assert deactivated.json()["status"] == "inactive"


def test_member_join_code_endpoints(client):
    headers = _headers("a@example.com")
    family = _create_family(client, "a@example.com")
    members = client.get(f"/v1/families/{family['id']}/members", headers=headers).json()["items"]
    creator_id = members[0]["id"]

    code = client.get(f"/v1/families/{family['id']}/members/{creator_id}/join-code", headers=headers)
    assert code.json()["join_code"] == family["creator_join_code"]

    regenerated = client.post(f"/v1/families/{family['id']}/members/{creator_id}/join-code", headers=headers)
    assert regenerated.status_code == 200
    assert regenerated.json()["join_code"] != family["creator_join_code"]

    protected = client.delete(f"/v1/families/{family['id']}/members/{creator_id}", headers=headers)
    assert protected.status_code == 409
    assert protected.json()["error"]["code"] == "PROTECTED_MEMBER_DELETION"
