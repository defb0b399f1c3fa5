"""
Test suite for the reviews app
Tests: review eligibility, moderation, helpful votes, seller responses and product rating upkeep
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from storefront.catalog.models import Product
from storefront.core.models import AuditLog
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.reviews.models import Review, rating_summary


class ProductRatingTests(TestCase):
    """Test that product ratings follow approved reviews"""

    def setUp(self):
        self.product = TestDataFactory.create_product()

    def test_approved_reviews_set_rating(self):
        """Average is rounded to one decimal and only approved reviews count"""
        for rating in (5, 4, 4):
            TestDataFactory.create_review(self.product, rating=rating)
        TestDataFactory.create_review(self.product, rating=1, status=Review.STATUS_PENDING)

        self.product.refresh_from_db()
        self.assertEqual(self.product.rating_average, Decimal('4.3'))
        self.assertEqual(self.product.rating_count, 3)

    def test_summary_distribution(self):
        """Every star bucket is present, empty ones as zero"""
        TestDataFactory.create_review(self.product, rating=5)
        TestDataFactory.create_review(self.product, rating=2)
        summary = rating_summary(self.product.pk)
        self.assertEqual(summary['distribution'], {1: 0, 2: 1, 3: 0, 4: 0, 5: 1})
        self.assertEqual(summary['average'], Decimal('3.5'))

    def test_delete_recomputes(self):
        """Removing a review takes it out of the rating"""
        keep = TestDataFactory.create_review(self.product, rating=4)
        drop = TestDataFactory.create_review(self.product, rating=2)
        drop.delete()
        self.product.refresh_from_db()
        self.assertEqual(self.product.rating_average, Decimal('4.0'))
        self.assertEqual(self.product.rating_count, 1)
        keep.delete()
        self.product.refresh_from_db()
        self.assertEqual((self.product.rating_average, self.product.rating_count), (Decimal('0.0'), 0))

    def test_rejecting_removes_from_rating(self):
        """A review that loses approval no longer counts"""
        review = TestDataFactory.create_review(self.product, rating=5)
        review.status = Review.STATUS_REJECTED
        review.save()
        self.product.refresh_from_db()
        self.assertEqual(self.product.rating_count, 0)

    def test_rating_drives_product_filters(self):
        """min_rating and sort_by=rating work off review ratings"""
        low = TestDataFactory.create_product(name='Low Rated')
        TestDataFactory.create_review(self.product, rating=5)
        TestDataFactory.create_review(low, rating=2)

        client = APIClient()
        response = client.get('/api/v1/products/', {'min_rating': 4})
        self.assertEqual([item['id'] for item in response.data['results']], [self.product.pk])

        response = client.get('/api/v1/products/', {'sort_by': 'rating'})
        self.assertEqual([item['id'] for item in response.data['results']], [self.product.pk, low.pk])


class ReviewAPITests(TestCase):
    """Test the review endpoints"""

    def setUp(self):
        self.customer = TestDataFactory.create_user()
        self.other_customer = TestDataFactory.create_user()
        self.seller = TestDataFactory.create_seller()
        self.admin = TestDataFactory.create_admin()
        self.product = TestDataFactory.create_product(seller=self.seller)
        self.order = TestDataFactory.deliver_order(TestDataFactory.create_order(self.customer, [self.product]))
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.customer)

    def payload(self, **overrides):
        data = {
            'product': self.product.pk,
            'order': self.order.pk,
            'rating': 4,
            'title': 'Solid purchase',
            'comment': 'Arrived quickly and works well.',
        }
        data.update(overrides)
        return data

    def test_create_review(self):
        """Reviews from delivered orders are verified and wait for moderation"""
        response = self.client.post('/api/v1/reviews/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Review.STATUS_PENDING)
        self.assertTrue(response.data['verified'])
        self.assertEqual(response.data['user'], self.customer.pk)
        self.product.refresh_from_db()
        self.assertEqual(self.product.rating_count, 0)
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Review').exists())

    def test_create_requires_delivered_order(self):
        """An order that has not been delivered does not qualify"""
        pending = TestDataFactory.create_order(self.customer, [TestDataFactory.create_product()])
        response = self.client.post('/api/v1/reviews/', self.payload(order=pending.pk), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('order', response.data)

    def test_create_requires_order(self):
        payload = self.payload()
        del payload['order']
        response = self.client.post('/api/v1/reviews/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('order', response.data)

    def test_create_product_must_be_in_order(self):
        """The reviewed product has to be one of the order's lines"""
        other_product = TestDataFactory.create_product()
        response = self.client.post('/api/v1/reviews/', self.payload(product=other_product.pk), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(str(response.data['product'][0]), 'Product not found in order')

    def test_create_with_someone_elses_order(self):
        self.client.authenticate_user(self.other_customer)
        response = self.client.post('/api/v1/reviews/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_one_review_per_product(self):
        """A second review of the same product is refused"""
        self.client.post('/api/v1/reviews/', self.payload(), format='json')
        response = self.client.post('/api/v1/reviews/', self.payload(rating=1), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Review.objects.filter(user=self.customer).count(), 1)

    def test_rating_bounds(self):
        """Ratings must be 1 to 5"""
        for rating in (0, 6):
            response = self.client.post('/api/v1/reviews/', self.payload(rating=rating), format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_blank_title_rejected(self):
        response = self.client.post('/api/v1/reviews/', self.payload(title='   '), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_anonymous_cannot_create(self):
        response = APIClient().post('/api/v1/reviews/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_requires_product(self):
        response = APIClient().get('/api/v1/reviews/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_shows_approved_with_summary(self):
        """Only approved reviews are listed; the summary matches them"""
        TestDataFactory.create_review(self.product, rating=5)
        TestDataFactory.create_review(self.product, rating=3)
        TestDataFactory.create_review(self.product, rating=1, status=Review.STATUS_PENDING)

        response = APIClient().get('/api/v1/reviews/', {'product': self.product.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 2)
        self.assertEqual(response.data['summary']['count'], 2)
        self.assertEqual(response.data['summary']['average'], 4.0)

    def test_list_rating_filter_and_sort(self):
        TestDataFactory.create_review(self.product, rating=5)
        TestDataFactory.create_review(self.product, rating=3)
        response = APIClient().get('/api/v1/reviews/', {'product': self.product.pk, 'rating': 3})
        self.assertEqual([item['rating'] for item in response.data['results']], [3])

        response = APIClient().get('/api/v1/reviews/', {'product': self.product.pk, 'sort_by': 'rating_low'})
        self.assertEqual([item['rating'] for item in response.data['results']], [3, 5])

        response = APIClient().get('/api/v1/reviews/', {'product': self.product.pk, 'sort_by': 'loudest'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_pending_review_visibility(self):
        """Unapproved reviews are visible to their author only"""
        review = TestDataFactory.create_review(self.product, user=self.customer, status=Review.STATUS_PENDING)
        self.assertEqual(APIClient().get(f'/api/v1/reviews/{review.pk}/').status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get(f'/api/v1/reviews/{review.pk}/').status_code, status.HTTP_200_OK)

    def test_update_pending_review(self):
        """Authors can edit unapproved reviews"""
        review = TestDataFactory.create_review(self.product, user=self.customer, status=Review.STATUS_PENDING)
        response = self.client.patch(f'/api/v1/reviews/{review.pk}/', {'rating': 2, 'product': TestDataFactory.create_product().pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        review.refresh_from_db()
        self.assertEqual(review.rating, 2)
        self.assertEqual(review.product, self.product)

    def test_edited_rejected_review_returns_to_moderation(self):
        review = TestDataFactory.create_review(self.product, user=self.customer, status=Review.STATUS_REJECTED)
        response = self.client.put(f'/api/v1/reviews/{review.pk}/', {'comment': 'Second thoughts'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Review.STATUS_PENDING)

    def test_approved_review_locked(self):
        """Approved reviews cannot be edited"""
        review = TestDataFactory.create_review(self.product, user=self.customer)
        response = self.client.patch(f'/api/v1/reviews/{review.pk}/', {'rating': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_edit_others_review(self):
        review = TestDataFactory.create_review(self.product, user=self.other_customer)
        response = self.client.patch(f'/api/v1/reviews/{review.pk}/', {'rating': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_own_review_updates_rating(self):
        """Deleting an approved review refreshes the product rating"""
        review = TestDataFactory.create_review(self.product, user=self.customer, rating=5)
        response = self.client.delete(f'/api/v1/reviews/{review.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.product.refresh_from_db()
        self.assertEqual(self.product.rating_count, 0)

    def test_delete_permissions(self):
        """Other customers cannot delete; admins can"""
        review = TestDataFactory.create_review(self.product, user=self.other_customer)
        self.assertEqual(self.client.delete(f'/api/v1/reviews/{review.pk}/').status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.admin)
        self.assertEqual(self.client.delete(f'/api/v1/reviews/{review.pk}/').status_code, status.HTTP_204_NO_CONTENT)

    def test_helpful_toggle(self):
        """Voting twice removes the vote"""
        review = TestDataFactory.create_review(self.product, user=self.other_customer)
        response = self.client.post(f'/api/v1/reviews/{review.pk}/helpful/')
        self.assertEqual(response.data, {'id': review.pk, 'helpful_count': 1, 'is_helpful': True})
        response = self.client.post(f'/api/v1/reviews/{review.pk}/helpful/')
        self.assertEqual(response.data, {'id': review.pk, 'helpful_count': 0, 'is_helpful': False})

    def test_helpful_requires_approved(self):
        review = TestDataFactory.create_review(self.product, user=self.other_customer, status=Review.STATUS_PENDING)
        response = self.client.post(f'/api/v1/reviews/{review.pk}/helpful/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_seller_responds(self):
        """The product's seller can reply"""
        review = TestDataFactory.create_review(self.product, user=self.customer)
        self.client.authenticate_user(self.seller)
        response = self.client.post(f'/api/v1/reviews/{review.pk}/response/', {'text': 'Thanks for the feedback!'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['response']['text'], 'Thanks for the feedback!')
        self.assertIsNotNone(response.data['response']['responded_at'])

    def test_response_permissions(self):
        """Other sellers and customers cannot reply"""
        review = TestDataFactory.create_review(self.product, user=self.customer)
        response = self.client.post(f'/api/v1/reviews/{review.pk}/response/', {'text': 'Me too'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(TestDataFactory.create_seller())
        response = self.client.post(f'/api/v1/reviews/{review.pk}/response/', {'text': 'Not mine'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_response_length(self):
        review = TestDataFactory.create_review(self.product, user=self.customer)
        self.client.authenticate_user(self.seller)
        response = self.client.post(f'/api/v1/reviews/{review.pk}/response/', {'text': 'x' * 501}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_my_reviews(self):
        """My reviews include those still in moderation"""
        TestDataFactory.create_review(self.product, user=self.customer, status=Review.STATUS_PENDING)
        TestDataFactory.create_review(TestDataFactory.create_product(), user=self.customer)
        TestDataFactory.create_review(self.product, user=self.other_customer)
        response = self.client.get('/api/v1/reviews/mine/')
        self.assertEqual(response.data['pagination']['total'], 2)


class AdminReviewAPITests(TestCase):
    """Test review moderation"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.product = TestDataFactory.create_product()
        self.review = TestDataFactory.create_review(self.product, rating=4, status=Review.STATUS_PENDING)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_pending_queue(self):
        TestDataFactory.create_review(self.product)
        response = self.client.get('/api/v1/admin/reviews/', {'status': 'pending'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['id'] for item in response.data['results']], [self.review.pk])

    def test_approve_updates_rating(self):
        """Approval is audited and brings the review into the product rating"""
        response = self.client.post(f'/api/v1/admin/reviews/{self.review.pk}/moderate/', {'status': 'approved'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product = Product.objects.get(pk=self.product.pk)
        self.assertEqual((product.rating_average, product.rating_count), (Decimal('4.0'), 1))
        self.assertTrue(AuditLog.objects.filter(action='status_change', model_name='Review').exists())

    def test_invalid_status(self):
        response = self.client.post(f'/api/v1/admin/reviews/{self.review.pk}/moderate/', {'status': 'pending'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_non_admin_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post(f'/api/v1/admin/reviews/{self.review.pk}/moderate/', {'status': 'approved'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
