"""
Critical integration tests for tenant isolation.
These tests ensure that data is properly isolated between organizations.
"""

from conftest import stock_of


def _order_for_org1(client, customer1, product, quantity=2):
    response = client.post('/api/orders', json={
        'customer_id': customer1.id, 'items': [{'product_id': product.id, 'quantity': quantity}]
    })
    assert response.status_code == 201
    return response.get_json()['data']


class TestOrderIsolation:
    """Orders of one organization are invisible to another."""

    def test_other_org_cannot_read(self, authenticated_client, org2_client, customer1, product):
        order = _order_for_org1(authenticated_client, customer1, product)

        assert org2_client.get(f"/api/orders/{order['id']}").status_code == 404
        assert org2_client.get('/api/orders').get_json()['pagination']['total'] == 0

    def test_other_org_cannot_mutate(self, authenticated_client, org2_client, session, customer1, product):
        order = _order_for_org1(authenticated_client, customer1, product)

        assert org2_client.patch(f"/api/orders/{order['id']}/cancel").status_code == 404
        assert org2_client.patch(f"/api/orders/{order['id']}/status", json={'status': 'shipped'}).status_code == 404
        assert org2_client.put(f"/api/orders/{order['id']}", json={'notes': 'x'}).status_code == 404
        assert org2_client.delete(f"/api/orders/{order['id']}").status_code == 404

        assert stock_of(session, product.id) == 8
        assert authenticated_client.get(f"/api/orders/{order['id']}").get_json()['data']['status'] == 'draft'

    def test_cannot_order_with_foreign_customer_or_product(self, org2_client, customer1, product, customer2):
        customer1_id, customer2_id, product_id = customer1.id, customer2.id, product.id

        foreign_customer = org2_client.post('/api/orders', json={
            'customer_id': customer1_id, 'items': [{'product_id': product_id, 'quantity': 1}]
        })
        foreign_product = org2_client.post('/api/orders', json={
            'customer_id': customer2_id, 'items': [{'product_id': product_id, 'quantity': 1}]
        })

        assert foreign_customer.status_code == 404
        assert foreign_product.status_code == 404

    def test_order_numbers_are_per_org(self, authenticated_client, org2_client, org1, org2,
                                       customer1, customer2, product, product_org2):
        first = _order_for_org1(authenticated_client, customer1, product)
        other = org2_client.post('/api/orders', json={
            'customer_id': customer2.id, 'items': [{'product_id': product_org2.id, 'quantity': 1}]
        }).get_json()['data']

        assert first['order_number'].startswith(f'ORD-{org1.id}-')
        assert other['order_number'].startswith(f'ORD-{org2.id}-')
        assert first['order_number'].endswith('-000001')
        assert other['order_number'].endswith('-000001')


class TestProductIsolation:
    """Products of one organization are invisible to another."""

    def test_product_list_is_scoped(self, authenticated_client, org2_client, product, product_org2):
        org1_skus = [p['id'] for p in authenticated_client.get('/api/products').get_json()['data']]
        org2_skus = [p['id'] for p in org2_client.get('/api/products').get_json()['data']]

        assert org1_skus == [product.id]
        assert org2_skus == [product_org2.id]

    def test_cannot_touch_foreign_product(self, org2_client, session, product):
        assert org2_client.get(f'/api/products/{product.id}').status_code == 404
        assert org2_client.patch(f'/api/products/{product.id}/stock',
                                 json={'type': 'subtract', 'quantity': 1}).status_code == 404
        assert org2_client.delete(f'/api/products/{product.id}').status_code == 404
        assert stock_of(session, product.id) == 10
