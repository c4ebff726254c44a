from django.core.validators import RegexValidator, MinLengthValidator
from django.db import models

driver_phone_validator = RegexValidator(
    regex=r'^[0-9+\-\s()]+$',
    message='Phone number may only contain digits, spaces and + - ( )',
)

bd_mobile_validator = RegexValidator(
    regex=r'^(\+?88)?01[3-9]\d{8}$',
    message='Invalid Bangladesh phone number',
)


class Driver(models.Model):
    """Delivery driver / route salesman"""
    TYPE_RETAIL = 'RETAIL'
    TYPE_SHIPMENT = 'SHIPMENT'
    DRIVER_TYPE_CHOICES = [
        (TYPE_RETAIL, 'Retail'),
        (TYPE_SHIPMENT, 'Shipment'),
    ]

    STATUS_ACTIVE = 'ACTIVE'
    STATUS_INACTIVE = 'INACTIVE'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
    ]

    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='drivers')
    name = models.CharField(max_length=200, validators=[MinLengthValidator(2)])
    phone = models.CharField(max_length=20, validators=[driver_phone_validator])
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    license_number = models.CharField(max_length=50, blank=True)
    route = models.CharField(max_length=200, blank=True)
    driver_type = models.CharField(max_length=20, choices=DRIVER_TYPE_CHOICES, default=TYPE_RETAIL)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    joining_date = models.DateField(null=True, blank=True)
    leaving_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE

    class Meta:
        db_table = 'drivers'
        ordering = ['name']
        unique_together = [['tenant', 'phone']]
        indexes = [
            models.Index(fields=['tenant', 'status'], name='idx_driver_tenant_status'),
        ]


class Area(models.Model):
    """Geographical area used to organise customers"""
    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='areas')
    name = models.CharField(max_length=100)
    code = models.CharField(max_length=10, blank=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'areas'
        ordering = ['name']
        unique_together = [['tenant', 'name']]


class Customer(models.Model):
    """End customer served by a driver"""
    CUSTOMER_TYPE_CHOICES = [
        ('RETAIL', 'Retail'),
        ('WHOLESALE', 'Wholesale'),
        ('INDUSTRIAL', 'Industrial'),
        ('COMMERCIAL', 'Commercial'),
    ]

    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='customers')
    area = models.ForeignKey(Area, on_delete=models.PROTECT, related_name='customers')
    driver = models.ForeignKey(Driver, on_delete=models.SET_NULL, null=True, blank=True, related_name='customers')
    name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20, blank=True, null=True, validators=[bd_mobile_validator])
    alternate_phone = models.CharField(max_length=20, blank=True, null=True, validators=[bd_mobile_validator])
    address = models.TextField(blank=True)
    customer_code = models.CharField(max_length=20, blank=True)
    customer_type = models.CharField(max_length=20, choices=CUSTOMER_TYPE_CHOICES, default='RETAIL')
    is_active = models.BooleanField(default=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'customers'
        ordering = ['name']
        indexes = [
            models.Index(fields=['tenant', 'is_active'], name='idx_customer_tenant_active'),
            models.Index(fields=['tenant', 'phone'], name='idx_customer_tenant_phone'),
        ]
