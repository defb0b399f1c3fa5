import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Query-string filters for product listings"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.CharFilter(method='filter_category', label='Category (id, slug or name)')
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')
    min_rating = django_filters.NumberFilter(field_name='rating_average', lookup_expr='gte')
    featured = django_filters.BooleanFilter(field_name='featured')
    seller = django_filters.NumberFilter(field_name='seller_id', lookup_expr='exact')
    brand = django_filters.CharFilter(field_name='brand', lookup_expr='iexact')
    status = django_filters.CharFilter(field_name='status', lookup_expr='exact')
    pincode = django_filters.CharFilter(method='filter_pincode', label='Seller pincode')
    in_stock = django_filters.BooleanFilter(method='filter_in_stock', label='In Stock')

    class Meta:
        model = Product
        fields = ['search', 'category', 'min_price', 'max_price', 'min_rating', 'featured',
                  'seller', 'brand', 'status', 'pincode', 'in_stock']

    def filter_search(self, queryset, name, value):
        """Every word must appear in the name, description, brand, tags or SKU"""
        words = value.split() if value else []
        for word in words:
            queryset = queryset.filter(
                Q(name__icontains=word) |
                Q(description__icontains=word) |
                Q(short_description__icontains=word) |
                Q(brand__icontains=word) |
                Q(sku__icontains=word) |
                Q(tags__icontains=word)
            )
        return queryset

    def filter_category(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        if value.isdigit():
            return queryset.filter(category_id=int(value))
        return queryset.filter(Q(category__slug__iexact=value) | Q(category__name__iexact=value))

    def filter_pincode(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(seller__seller_details__pincode=value)

    def filter_in_stock(self, queryset, name, value):
        in_stock = Q(track_quantity=False) | Q(allow_backorder=True) | Q(quantity__gt=0)
        return queryset.filter(in_stock) if value else queryset.exclude(in_stock)
