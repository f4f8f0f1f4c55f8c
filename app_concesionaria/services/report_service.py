# ==============================================================================
# SERVICIO DE REPORTES
# ==============================================================================
# Estadísticas de ventas por período (hoy / semana / mes / año / rango),
# ranking de vendedores y marcas, desglose diario, exportación CSV y el
# resumen del panel principal.
#
# Las ventas llegan ya reconciliadas (con `seller`, `vehicle`, `customer`)
# desde SalesService; este servicio no consulta el backend directamente.
# ==============================================================================

import csv
import io
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from app_concesionaria.models import PAYMENT_METHOD_LABELS, VehicleStatus

PERIODS = {
    'today': 'Hoy',
    'week': 'Esta semana',
    'month': 'Este mes',
    'year': 'Este año',
    'custom': 'Personalizado',
}

CSV_HEADER = [
    'fecha', 'vehiculo', 'placa', 'cliente', 'documento',
    'vendedor', 'forma_pago', 'precio', 'entrada', 'financiado',
]


def parse_date(date_str: str) -> Optional[datetime]:
    """
    Parsea una fecha ISO (con o sin zona horaria).
    Retorna None si no puede parsear.
    """
    if not date_str:
        return None
    try:
        value = datetime.fromisoformat(str(date_str).replace('Z', '+00:00'))
    except (ValueError, TypeError):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def get_date_range(
    period: str,
    custom_start: str = None,
    custom_end: str = None,
    now: datetime = None
) -> Tuple[datetime, datetime]:
    """
    Calcula el rango de fechas según el período solicitado.

    Args:
        period: 'today', 'week', 'month', 'year', 'custom'
        custom_start: Fecha inicio para período custom (YYYY-MM-DD)
        custom_end: Fecha fin para período custom (YYYY-MM-DD)

    Returns:
        Tupla (fecha_inicio, fecha_fin) en UTC
    """
    now = now or datetime.now(timezone.utc)
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if period == 'today':
        return today_start, now

    elif period == 'week':
        # Inicio de la semana (lunes)
        return today_start - timedelta(days=now.weekday()), now

    elif period == 'month':
        return today_start.replace(day=1), now

    elif period == 'year':
        return today_start.replace(month=1, day=1), now

    elif period == 'custom' and custom_start and custom_end:
        try:
            start = datetime.strptime(custom_start, '%Y-%m-%d').replace(tzinfo=timezone.utc)
            end = datetime.strptime(custom_end, '%Y-%m-%d').replace(
                hour=23, minute=59, second=59, tzinfo=timezone.utc
            )
        except ValueError:
            # Fallback al mes actual si las fechas no son válidas
            return today_start.replace(day=1), now
        if start > end:
            start, end = end.replace(hour=0, minute=0, second=0), start.replace(hour=23, minute=59, second=59)
        return start, end

    # Default: mes actual
    return today_start.replace(day=1), now


def filter_by_period(sales: List[Dict[str, Any]], start: datetime, end: datetime) -> List[Dict[str, Any]]:
    """Ventas cuyo created_at cae dentro del rango (inclusive)."""
    filtered = []
    for sale in sales:
        sale_date = parse_date(sale.get('created_at'))
        if sale_date and start <= sale_date <= end:
            filtered.append(sale)
    return filtered


def format_money(amount, empty='-') -> str:
    """Formatea dinero: R$ 1.234,56"""
    if amount in (None, ''):
        return empty
    try:
        value = f"{float(amount):,.2f}"
    except (TypeError, ValueError):
        return str(amount)
    return 'R$ ' + value.replace(',', '_').replace('.', ',').replace('_', '.')


def seller_name(sale: Dict[str, Any]) -> str:
    seller = sale.get('seller') or {}
    return f"{seller.get('first_name') or ''} {seller.get('last_name') or ''}".strip() or 'Vendedor'


def vehicle_title(vehicle: Dict[str, Any]) -> str:
    vehicle = vehicle or {}
    parts = [vehicle.get('brand'), vehicle.get('model'), vehicle.get('version')]
    title = ' '.join(str(p) for p in parts if p)
    year = vehicle.get('year')
    return f"{title} {year}".strip() if year else title


class ReportService:
    """
    Servicio de reportes de ventas.

    Responsabilidades:
    - Calcular estadísticas por período
    - Agrupar por vendedor, marca y día
    - Exportar ventas a CSV
    """

    def __init__(
        self,
        sales_loader: Callable[[], List[Dict[str, Any]]] = None,
        vehicles_loader: Callable[[], List[Dict[str, Any]]] = None
    ):
        """
        Args:
            sales_loader: Función que retorna la lista de ventas
            vehicles_loader: Función que retorna el inventario
        """
        self._sales_loader = sales_loader
        self._vehicles_loader = vehicles_loader

    def _load_sales(self) -> List[Dict[str, Any]]:
        return self._sales_loader() if self._sales_loader else []

    def _load_vehicles(self) -> List[Dict[str, Any]]:
        return self._vehicles_loader() if self._vehicles_loader else []

    def sales_in_period(
        self,
        period: str = 'month',
        custom_start: str = None,
        custom_end: str = None,
        sales: List[Dict[str, Any]] = None,
        now: datetime = None
    ) -> Tuple[List[Dict[str, Any]], datetime, datetime]:
        start, end = get_date_range(period, custom_start, custom_end, now)
        if sales is None:
            sales = self._load_sales()
        return filter_by_period(sales, start, end), start, end

    def sales_report(
        self,
        period: str = 'month',
        custom_start: str = None,
        custom_end: str = None,
        sales: List[Dict[str, Any]] = None,
        now: datetime = None
    ) -> Dict[str, Any]:
        """
        Estadísticas de ventas del período.

        Returns:
            {
                'period', 'period_label', 'date_range': {'start', 'end'},
                'summary': {'count', 'revenue', 'average_ticket'},
                'by_seller': [{'seller_id', 'name', 'count', 'total'}],
                'by_brand': [{'brand', 'count', 'total'}],
                'by_payment_method': [{'method', 'label', 'count', 'total'}],
                'daily_breakdown': [{'date', 'count', 'total'}],
                'sales': [...]
            }
        """
        filtered, start, end = self.sales_in_period(period, custom_start, custom_end, sales, now)

        revenue = 0.0
        by_seller = defaultdict(lambda: {'name': '', 'count': 0, 'total': 0.0})
        by_brand = defaultdict(lambda: {'count': 0, 'total': 0.0})
        by_method = defaultdict(lambda: {'count': 0, 'total': 0.0})
        daily = defaultdict(lambda: {'count': 0, 'total': 0.0})

        for sale in filtered:
            price = float(sale.get('sale_price') or 0)
            revenue += price

            seller_key = sale.get('seller_id') or ''
            by_seller[seller_key]['name'] = seller_name(sale)
            by_seller[seller_key]['count'] += 1
            by_seller[seller_key]['total'] += price

            brand = (sale.get('vehicle') or {}).get('brand') or 'Sin marca'
            by_brand[brand]['count'] += 1
            by_brand[brand]['total'] += price

            method = sale.get('payment_method') or 'cash'
            by_method[method]['count'] += 1
            by_method[method]['total'] += price

            sale_date = parse_date(sale.get('created_at'))
            day_key = sale_date.strftime('%Y-%m-%d')
            daily[day_key]['count'] += 1
            daily[day_key]['total'] += price

        count = len(filtered)
        sellers = [
            {'seller_id': sid or None, 'name': d['name'], 'count': d['count'], 'total': round(d['total'], 2)}
            for sid, d in by_seller.items()
        ]
        sellers.sort(key=lambda x: (x['total'], x['count']), reverse=True)

        brands = [
            {'brand': b, 'count': d['count'], 'total': round(d['total'], 2)}
            for b, d in by_brand.items()
        ]
        brands.sort(key=lambda x: (x['count'], x['total']), reverse=True)

        methods = [
            {'method': m, 'label': PAYMENT_METHOD_LABELS.get(m, m), 'count': d['count'], 'total': round(d['total'], 2)}
            for m, d in by_method.items()
        ]
        methods.sort(key=lambda x: x['total'], reverse=True)

        return {
            'period': period,
            'period_label': PERIODS.get(period, PERIODS['month']),
            'date_range': {
                'start': start.strftime('%Y-%m-%d'),
                'end': end.strftime('%Y-%m-%d')
            },
            'summary': {
                'count': count,
                'revenue': round(revenue, 2),
                'average_ticket': round(revenue / count, 2) if count else 0.0,
            },
            'by_seller': sellers,
            'by_brand': brands,
            'by_payment_method': methods,
            'daily_breakdown': [
                {'date': day, 'count': d['count'], 'total': round(d['total'], 2)}
                for day, d in sorted(daily.items())
            ],
            'sales': filtered,
        }

    @staticmethod
    def export_csv(sales: List[Dict[str, Any]]) -> str:
        """Ventas a CSV (una fila por venta)."""
        si = io.StringIO()
        writer = csv.writer(si)
        writer.writerow(CSV_HEADER)
        for sale in sales:
            vehicle = sale.get('vehicle') or {}
            customer = sale.get('customer') or {}
            sale_date = parse_date(sale.get('created_at'))
            writer.writerow([
                sale_date.strftime('%Y-%m-%d %H:%M') if sale_date else '',
                vehicle_title(vehicle),
                vehicle.get('plate') or '',
                customer.get('name') or '',
                customer.get('document') or '',
                seller_name(sale),
                PAYMENT_METHOD_LABELS.get(sale.get('payment_method'), sale.get('payment_method') or ''),
                f"{float(sale.get('sale_price') or 0):.2f}",
                f"{float(sale.get('down_payment') or 0):.2f}",
                f"{float(sale.get('financed_amount') or 0):.2f}",
            ])
        return si.getvalue()

    def dashboard_summary(
        self,
        sales: List[Dict[str, Any]] = None,
        vehicles: List[Dict[str, Any]] = None,
        now: datetime = None
    ) -> Dict[str, Any]:
        """Indicadores del panel: stock, ventas del mes y últimas ventas."""
        if sales is None:
            sales = self._load_sales()
        if vehicles is None:
            vehicles = self._load_vehicles()

        month_sales, _, _ = self.sales_in_period('month', sales=sales, now=now)
        month_revenue = sum(float(s.get('sale_price') or 0) for s in month_sales)

        status_counts = defaultdict(int)
        for vehicle in vehicles:
            status_counts[vehicle.get('status') or VehicleStatus.AVAILABLE.value] += 1

        return {
            'vehicles_available': status_counts[VehicleStatus.AVAILABLE.value],
            'vehicles_reserved': status_counts[VehicleStatus.RESERVED.value],
            'vehicles_sold': status_counts[VehicleStatus.SOLD.value],
            'month_sales': len(month_sales),
            'month_revenue': round(month_revenue, 2),
            'recent_sales': list(sales[:5]),
        }
