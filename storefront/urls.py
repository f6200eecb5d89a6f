from django.urls import path

from . import views

app_name = "storefront"

urlpatterns = [
    path("productos/stock/", views.products_stock, name="products_stock"),
    path("precios/", views.public_price_list, name="public_price_list"),
    path("precios/mi-lista/", views.customer_price_list, name="customer_price_list"),
    path("precios/listas/", views.price_list_create, name="price_list_create"),
    path("precios/umbrales/", views.price_thresholds, name="price_thresholds"),
    path("checkout/", views.checkout, name="checkout"),
    path("pago/procesar/", views.process_payment, name="process_payment"),
    path("pago/exito/", views.payment_success, name="payment_success"),
    path("pago/error/", views.payment_failure, name="payment_failure"),
    path("mercadopago/webhook/", views.mercadopago_webhook, name="mercadopago_webhook"),
    path("ventas/", views.sale_create, name="sale_create"),
    path("ventas/<int:sale_id>/eliminar/", views.sale_delete, name="sale_delete"),
    path("ventas/<int:sale_id>/estado/", views.sale_status_update, name="sale_status_update"),
    path("depositos/", views.warehouses, name="warehouses"),
    path("depositos/<int:pk>/", views.warehouse_update, name="warehouse_update"),
    path("depositos/<int:pk>/eliminar/", views.warehouse_delete, name="warehouse_delete"),
    path("transferencias/", views.stock_transfers, name="stock_transfers"),
    path("produccion/", views.production_register, name="production_register"),
    path("produccion/<int:lot_id>/", views.production_update, name="production_update"),
    path("insumos/", views.supplies, name="supplies"),
    path("insumos/<int:pk>/", views.supply_update, name="supply_update"),
    path("insumos/<int:pk>/stock/", views.supply_add_stock, name="supply_add_stock"),
    path("dashboard/", views.dashboard, name="dashboard"),
    path("estadisticas/", views.product_statistics, name="product_statistics"),
    path("productos/<int:pk>/dashboard/", views.product_dashboard, name="product_dashboard"),
    path("comex/", views.comex_sheet, name="comex_sheet"),
    path("comex/cotizaciones/", views.comex_rates, name="comex_rates"),
    path("comex/solicitudes/", views.access_requests, name="access_requests"),
    path("comex/solicitar/", views.access_request_create, name="access_request_create"),
    path("comex/solicitudes/<int:pk>/aprobar/", views.access_request_approve, name="access_request_approve"),
    path("comex/solicitudes/<int:pk>/rechazar/", views.access_request_reject, name="access_request_reject"),
    path("usuarios/", views.users, name="users"),
    path("usuarios/<int:pk>/roles/", views.user_roles_update, name="user_roles_update"),
    path("conocimiento/", views.knowledge_items, name="knowledge_items"),
    path("conocimiento/<int:pk>/", views.knowledge_item_update, name="knowledge_item_update"),
    path("conocimiento/<int:pk>/eliminar/", views.knowledge_item_delete, name="knowledge_item_delete"),
    path("conocimiento/exportar/", views.knowledge_export, name="knowledge_export"),
    path("asistente/", views.assistant_chat, name="assistant_chat"),
]
