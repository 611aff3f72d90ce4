# 套餐API测试

import pytest


@pytest.fixture
def package(support_ops):
    return support_ops.create_package("Wedding Buffet", "selection", min_guests=50)


class TestPackages:
    """套餐接口"""

    def test_create_and_list(self, client, admin_headers):
        response = client.post("/api/packages", json={
            "name": "Wedding Buffet", "type": "selection", "minGuests": 50, "badge": "Popular"
        }, headers=admin_headers)

        assert response.status_code == 200
        package = response.json()["data"]
        assert package["type"] == "selection"
        assert package["minGuests"] == 50
        assert package["displayOrder"] == 1
        assert package["tiers"] == []

        listed = client.get("/api/packages").json()["data"]
        assert [p["id"] for p in listed] == [package["id"]]

    def test_create_requires_admin(self, client):
        assert client.post("/api/packages", json={"name": "A", "type": "fixed"}).status_code == 401

    def test_create_requires_name_and_type(self, client, admin_headers):
        response = client.post("/api/packages", json={"name": "A"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Name and type are required"

    def test_create_invalid_type(self, client, admin_headers):
        response = client.post("/api/packages", json={"name": "A", "type": "buffet"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid package type"

    def test_get_package_with_children(self, client, package, support_ops):
        tier = support_ops.create_package_child('package_tiers', package['id'],
                                                {'name': 'Silver', 'price_cents': 2850, 'select_count': 2})
        category = support_ops.create_package_child('package_categories', package['id'], {'name': 'Curries'})
        support_ops.create_package_child('package_category_items', category['id'], {'name': 'Korma'})
        support_ops.create_package_child('package_items', package['id'],
                                         {'name': 'Naan', 'tier_prices': {tier['id']: 300}})

        response = client.get(f"/api/packages/{package['id']}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["tiers"][0]["price"] == "28.50"
        assert data["tiers"][0]["selectCount"] == 2
        assert data["categories"][0]["items"][0]["name"] == "Korma"
        assert data["items"][0]["tierPrices"] == {tier["id"]: "3.00"}
        assert data["items"][0]["price"] is None

    def test_get_missing(self, client):
        response = client.get("/api/packages/missing")
        assert response.status_code == 404
        assert response.json()["error"] == "Package not found"

    def test_update_and_hide(self, client, admin_headers, package):
        response = client.put(f"/api/packages/{package['id']}",
                              json={"name": "Grand Buffet", "active": False}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Grand Buffet"
        assert client.get("/api/packages", params={"activeOnly": "true"}).json()["data"] == []

    def test_update_rejects_bad_values(self, client, admin_headers, package):
        url = f"/api/packages/{package['id']}"
        assert client.put(url, json={"type": "buffet"}, headers=admin_headers).status_code == 400
        assert client.put(url, json={"name": " "}, headers=admin_headers).status_code == 400
        assert client.put("/api/packages/missing", json={"name": "X"}, headers=admin_headers).status_code == 404

    def test_delete(self, client, admin_headers, package):
        url = f"/api/packages/{package['id']}"
        assert client.delete(url).status_code == 401
        assert client.delete(url, headers=admin_headers).status_code == 200
        assert client.delete(url, headers=admin_headers).status_code == 404


class TestTiersAndUpgrades:
    """档位与加购项接口"""

    def test_create_tier(self, client, admin_headers, package, support_ops):
        response = client.post(f"/api/packages/{package['id']}/tiers",
                               json={"name": "Gold", "price": "32.00", "selectCount": 3}, headers=admin_headers)

        assert response.status_code == 200
        tier = response.json()["data"]
        assert tier["price"] == "32.00"
        assert support_ops.get_package_child('package_tiers', tier["id"])["price_cents"] == 3200

    @pytest.mark.parametrize("body,error", [
        ({"name": "Gold"}, "Name and price are required"),
        ({"price": "10.00"}, "Name and price are required"),
        ({"name": "Gold", "price": "-1"}, "Invalid price"),
    ])
    def test_create_tier_validation(self, client, admin_headers, package, body, error):
        response = client.post(f"/api/packages/{package['id']}/tiers", json=body, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == error

    def test_create_tier_missing_package(self, client, admin_headers):
        response = client.post("/api/packages/missing/tiers",
                               json={"name": "Gold", "price": "32.00"}, headers=admin_headers)
        assert response.status_code == 404

    def test_update_tier(self, client, admin_headers, package, support_ops):
        tier = support_ops.create_package_child('package_tiers', package['id'], {'name': 'Gold', 'price_cents': 100})
        url = f"/api/packages/{package['id']}/tiers/{tier['id']}"

        response = client.put(url, json={"price": "35.25"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["price"] == "35.25"

        assert client.put(url, json={"price": None}, headers=admin_headers).status_code == 400

    def test_tier_of_other_package(self, client, admin_headers, package, support_ops):
        other = support_ops.create_package("Other", "fixed")
        tier = support_ops.create_package_child('package_tiers', other['id'], {'name': 'Gold', 'price_cents': 100})
        url = f"/api/packages/{package['id']}/tiers/{tier['id']}"

        assert client.put(url, json={"name": "Mine"}, headers=admin_headers).status_code == 404
        assert client.delete(url, headers=admin_headers).status_code == 404
        assert support_ops.get_package_child('package_tiers', tier['id'])['name'] == 'Gold'

    def test_delete_tier(self, client, admin_headers, package, support_ops):
        tier = support_ops.create_package_child('package_tiers', package['id'], {'name': 'Gold', 'price_cents': 100})

        response = client.delete(f"/api/packages/{package['id']}/tiers/{tier['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert support_ops.get_package_child('package_tiers', tier['id']) is None

    def test_create_upgrade(self, client, admin_headers, package, support_ops):
        url = f"/api/packages/{package['id']}/upgrades"

        response = client.post(url, json={"name": "Dessert Bar", "pricePerPerson": "4.50"}, headers=admin_headers)
        assert response.status_code == 200
        upgrade = response.json()["data"]
        assert upgrade["pricePerPerson"] == "4.50"
        assert support_ops.get_package_child('package_upgrades', upgrade["id"])["price_per_person_cents"] == 450

        missing_price = client.post(url, json={"name": "Chai"}, headers=admin_headers)
        assert missing_price.status_code == 400
        assert missing_price.json()["error"] == "Price is required"

    def test_upgrade_requires_admin(self, client, package):
        response = client.post(f"/api/packages/{package['id']}/upgrades",
                               json={"name": "Chai", "pricePerPerson": "2.00"})
        assert response.status_code == 401


class TestCategoriesAndItems:
    """分类、可选项与单品接口"""

    def test_category_with_choices(self, client, admin_headers, package):
        base = f"/api/packages/{package['id']}/categories"
        category = client.post(base, json={"name": "Curries"}, headers=admin_headers).json()["data"]

        response = client.post(f"{base}/{category['id']}/items", json={"name": "Korma"}, headers=admin_headers)
        assert response.status_code == 200
        choice = response.json()["data"]
        assert choice["categoryId"] == category["id"]

        renamed = client.put(f"{base}/{category['id']}/items/{choice['id']}",
                             json={"name": "Lamb Korma"}, headers=admin_headers)
        assert renamed.json()["data"]["name"] == "Lamb Korma"

        data = client.get(f"/api/packages/{package['id']}").json()["data"]
        assert data["categories"][0]["items"][0]["name"] == "Lamb Korma"

    def test_category_requires_name(self, client, admin_headers, package):
        response = client.post(f"/api/packages/{package['id']}/categories", json={}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Name is required"

    def test_choice_under_wrong_category(self, client, admin_headers, package, support_ops):
        curries = support_ops.create_package_child('package_categories', package['id'], {'name': 'Curries'})
        breads = support_ops.create_package_child('package_categories', package['id'], {'name': 'Breads'})
        naan = support_ops.create_package_child('package_category_items', breads['id'], {'name': 'Naan'})

        url = f"/api/packages/{package['id']}/categories/{curries['id']}/items/{naan['id']}"
        assert client.delete(url, headers=admin_headers).status_code == 404
        assert support_ops.get_package_child('package_category_items', naan['id']) is not None

    def test_category_of_other_package(self, client, admin_headers, package, support_ops):
        other = support_ops.create_package("Other", "fixed")
        category = support_ops.create_package_child('package_categories', other['id'], {'name': 'Curries'})

        response = client.post(f"/api/packages/{package['id']}/categories/{category['id']}/items",
                               json={"name": "Korma"}, headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Category not found"

    def test_delete_category_removes_choices(self, client, admin_headers, package, support_ops):
        category = support_ops.create_package_child('package_categories', package['id'], {'name': 'Curries'})
        choice = support_ops.create_package_child('package_category_items', category['id'], {'name': 'Korma'})

        response = client.delete(f"/api/packages/{package['id']}/categories/{category['id']}",
                                 headers=admin_headers)
        assert response.status_code == 200
        assert support_ops.get_package_child('package_category_items', choice['id']) is None

    def test_create_item_with_tier_prices(self, client, admin_headers, package, support_ops):
        tier = support_ops.create_package_child('package_tiers', package['id'], {'name': 'Small', 'price_cents': 0})

        response = client.post(f"/api/packages/{package['id']}/items", json={
            "name": "Biryani", "tierPrices": {tier["id"]: "45.00"}, "badge": "Chef's pick"
        }, headers=admin_headers)

        assert response.status_code == 200
        item = response.json()["data"]
        assert item["tierPrices"] == {tier["id"]: "45.00"}
        assert support_ops.get_package_child('package_items', item["id"])["tier_prices"] == {tier["id"]: 4500}

    def test_item_invalid_tier_price(self, client, admin_headers, package):
        response = client.post(f"/api/packages/{package['id']}/items",
                               json={"name": "Biryani", "tierPrices": {"t1": "-5"}}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid price"

    def test_update_item_price(self, client, admin_headers, package, support_ops):
        item = support_ops.create_package_child('package_items', package['id'], {'name': 'Naan', 'price_cents': 300})
        url = f"/api/packages/{package['id']}/items/{item['id']}"

        response = client.put(url, json={"price": "3.50", "active": False}, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["price"] == "3.50"
        assert data["active"] is False

        assert client.get(f"/api/packages/{package['id']}").json()["data"]["items"][0]["active"] is False
        assert client.get("/api/packages", params={"activeOnly": "true"}).json()["data"][0]["items"] == []

    def test_item_of_other_package(self, client, admin_headers, package, support_ops):
        other = support_ops.create_package("Other", "fixed")
        item = support_ops.create_package_child('package_items', other['id'], {'name': 'Naan'})

        response = client.put(f"/api/packages/{package['id']}/items/{item['id']}",
                              json={"name": "Mine"}, headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Item not found"
