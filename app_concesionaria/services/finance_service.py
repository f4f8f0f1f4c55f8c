# ==============================================================================
# SERVICIO FINANCIERO
# ==============================================================================
# - Simulador de financiamiento (tabla Price: cuotas fijas)
# - Resumen financiero de ventas: ingresos, costo, margen, formas de pago
# ==============================================================================

import math
from collections import defaultdict
from typing import Any, Dict, List

from app_concesionaria.models import PAYMENT_METHOD_LABELS, PaymentMethod

ALLOWED_TERMS = (12, 24, 36, 48, 60)
MAX_MONTHLY_RATE = 10.0


class FinanceService:
    """
    Cálculos financieros. No consulta el backend: recibe las ventas ya
    cargadas por SalesService.
    """

    def __init__(self, default_monthly_rate: float = 1.99):
        self.default_monthly_rate = default_monthly_rate

    def simulate_financing(self, price, down_payment=0, months=48, monthly_rate=None) -> Dict[str, Any]:
        """
        Simula un financiamiento con cuotas fijas (sistema francés / Price).

        cuota = financiado * i / (1 - (1 + i) ** -n)

        Args:
            price: Precio del vehículo
            down_payment: Entrada
            months: Plazo en meses (12, 24, 36, 48 o 60)
            monthly_rate: Tasa mensual en porcentaje (1.99 = 1,99% a.m.)

        Returns:
            {'ok': True, installment, financed, total_paid, total_interest, ...}
            o {'ok': False, 'error': str}
        """
        try:
            price = float(price)
            down = float(down_payment or 0)
            months = int(months)
            rate = float(self.default_monthly_rate if monthly_rate in (None, '') else monthly_rate)
        except (TypeError, ValueError):
            return {'ok': False, 'error': 'Valores inválidos para la simulación.'}
        if not all(math.isfinite(v) for v in (price, down, rate)):
            return {'ok': False, 'error': 'Valores inválidos para la simulación.'}

        if price <= 0:
            return {'ok': False, 'error': 'El precio debe ser mayor a cero.'}
        if down < 0 or down >= price:
            return {'ok': False, 'error': 'La entrada debe ser menor que el precio.'}
        if months not in ALLOWED_TERMS:
            return {'ok': False, 'error': f"Plazo inválido. Opciones: {', '.join(str(t) for t in ALLOWED_TERMS)} meses."}
        if rate < 0 or rate > MAX_MONTHLY_RATE:
            return {'ok': False, 'error': f'La tasa mensual debe estar entre 0% y {MAX_MONTHLY_RATE:g}%.'}

        financed = price - down
        i = rate / 100
        if i == 0:
            installment = financed / months
        else:
            installment = financed * i / (1 - (1 + i) ** -months)

        total_installments = installment * months
        return {
            'ok': True,
            'price': round(price, 2),
            'down_payment': round(down, 2),
            'financed': round(financed, 2),
            'months': months,
            'monthly_rate': rate,
            'installment': round(installment, 2),
            'total_installments': round(total_installments, 2),
            'total_paid': round(total_installments + down, 2),
            'total_interest': round(total_installments - financed, 2),
        }

    def finance_summary(self, sales: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Resumen financiero de un conjunto de ventas (ya filtradas por período).

        El costo sale del purchase_price del vehículo embebido; las ventas sin
        costo se cuentan aparte y no entran en el margen.
        """
        revenue = 0.0
        cost = 0.0
        revenue_with_cost = 0.0
        missing_cost = 0
        down_payments = 0.0
        financed_total = 0.0
        by_method = defaultdict(lambda: {'count': 0, 'total': 0.0})

        for sale in sales:
            price = float(sale.get('sale_price') or 0)
            revenue += price
            down_payments += float(sale.get('down_payment') or 0)
            financed_total += float(sale.get('financed_amount') or 0)

            purchase_price = (sale.get('vehicle') or {}).get('purchase_price')
            if purchase_price is None:
                missing_cost += 1
            else:
                cost += float(purchase_price)
                revenue_with_cost += price

            method = sale.get('payment_method') or PaymentMethod.CASH.value
            by_method[method]['count'] += 1
            by_method[method]['total'] += price

        count = len(sales)
        gross_profit = revenue_with_cost - cost
        margin = (gross_profit / revenue_with_cost * 100) if revenue_with_cost > 0 else 0.0

        payment_methods = []
        for method, data in sorted(by_method.items(), key=lambda kv: -kv[1]['total']):
            payment_methods.append({
                'method': method,
                'label': PAYMENT_METHOD_LABELS.get(method, method),
                'count': data['count'],
                'total': round(data['total'], 2),
                'share': round(data['total'] / revenue * 100, 1) if revenue > 0 else 0.0,
            })

        return {
            'count': count,
            'revenue': round(revenue, 2),
            'cost': round(cost, 2),
            'gross_profit': round(gross_profit, 2),
            'margin': round(margin, 1),
            'average_ticket': round(revenue / count, 2) if count else 0.0,
            'down_payments': round(down_payments, 2),
            'financed_total': round(financed_total, 2),
            'missing_cost': missing_cost,
            'by_payment_method': payment_methods,
        }
