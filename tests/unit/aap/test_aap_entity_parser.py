import pytest  # type: ignore

from aap_sync.connectors.core.base.connection.in_memory_connection import InMemoryEntityProviderConnection
from aap_sync.connectors.core.interfaces.connection.iconnection import (
    DeferredEntity,
    DeltaMutation,
    FullMutation,
)
from aap_sync.connectors.sources.aap.entity_parser import (
    create_aap_admins_group,
    limit_group_memberships,
    organization_parser,
    team_parser,
    user_parser,
)
from aap_sync.models.entities import Organization, Team, User

BASE_URL = "https://aap.example.com"


class TestParsers:

    def test_organization_group(self):
        entity = organization_parser(BASE_URL, "default", Organization(id=1, name="Engineering Org"), ["alice"], ["blue"])

        assert entity["kind"] == "Group"
        assert entity["metadata"]["name"] == "engineering-org"
        assert entity["metadata"]["title"] == "Engineering Org"
        assert entity["metadata"]["annotations"]["backstage.io/managed-by-origin-location"] == (
            "url:https://aap.example.com/access/organizations/1/details"
        )
        assert entity["spec"] == {"type": "organization", "children": ["blue"], "members": ["alice"]}

    def test_team_group(self):
        entity = team_parser(BASE_URL, "default", Team(id=4, name="Blue  Team", organization=1))

        assert entity["metadata"]["name"] == "blue-team"
        assert entity["spec"]["type"] == "team"
        assert entity["spec"]["members"] == []

    def test_user_without_names_uses_username(self, faker_instance):
        username = faker_instance.user_name()

        entity = user_parser(BASE_URL, "default", User(id=3, username=username), ["blue-team"])

        assert entity["metadata"]["title"] == username
        assert entity["spec"]["profile"]["displayName"] == username
        assert entity["spec"]["memberOf"] == ["blue-team"]
        assert entity["metadata"]["annotations"]["aap.platform/is_superuser"] == "false"

    def test_superuser_keeps_admins_group_under_cap(self):
        user = User(id=1, username="root", is_superuser=True)

        entity = user_parser(BASE_URL, "default", user, ["a", "b", "c"], max_group_memberships=2)

        assert entity["spec"]["memberOf"] == ["aap-admins", "a"]

    def test_memberships_below_cap_are_untouched(self):
        assert limit_group_memberships("bob", ["a", "b"], 5) == ["a", "b"]

    def test_admins_group_lists_superusers_only(self):
        users = [User(id=1, username="root", is_superuser=True), User(id=2, username="bob")]

        entity = create_aap_admins_group(users, "AapEntityProvider:dev")

        assert entity["metadata"]["name"] == "aap-admins"
        assert entity["metadata"]["annotations"]["backstage.io/managed-by-location"] == "AapEntityProvider:dev"
        assert entity["metadata"]["annotations"]["aap.platform/managed"] == "true"
        assert entity["spec"]["members"] == ["user:default/root"]


def _user_entity(name, location_key="provider-a"):
    return DeferredEntity(
        entity={"kind": "User", "metadata": {"namespace": "default", "name": name}},
        locationKey=location_key,
    )


class TestInMemoryConnection:

    @pytest.mark.asyncio
    async def test_full_mutation_replaces_location_key(self, logger):
        connection = InMemoryEntityProviderConnection(logger)
        await connection.apply_mutation(FullMutation(entities=[_user_entity("a"), _user_entity("b")]))
        await connection.apply_mutation(FullMutation(entities=[_user_entity("x", "provider-b")]))
        await connection.apply_mutation(FullMutation(entities=[_user_entity("c")]))

        assert [e["metadata"]["name"] for e in connection.get_entities("provider-a")] == ["c"]
        assert [e["metadata"]["name"] for e in connection.get_entities("provider-b")] == ["x"]

    @pytest.mark.asyncio
    async def test_delta_mutation_adds_and_removes(self, logger):
        connection = InMemoryEntityProviderConnection(logger)
        await connection.apply_mutation(FullMutation(entities=[_user_entity("a"), _user_entity("b")]))
        await connection.apply_mutation(DeltaMutation(added=[_user_entity("c")], removed=[_user_entity("a")]))

        assert sorted(e["metadata"]["name"] for e in connection.get_entities()) == ["b", "c"]
        assert [m.type for m in connection.mutations] == ["full", "delta"]
