"""Database schema initialization.

Contains all CREATE TABLE, CREATE INDEX statements and seed data
for the MidCar database.

Called by database.init_db() at application startup.
"""
import os
import logging

from werkzeug.security import generate_password_hash

logger = logging.getLogger('midcar.migrations')


def _create_core_tables(cursor):
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            name TEXT,
            password_hash TEXT,
            role TEXT NOT NULL DEFAULT 'vendedor',
            phone TEXT,
            is_active BOOLEAN DEFAULT TRUE,
            last_login TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS vehicles (
            id SERIAL PRIMARY KEY,
            vin TEXT,
            matricula TEXT,
            stock_id TEXT UNIQUE,
            estado TEXT NOT NULL DEFAULT 'disponible',
            destacado BOOLEAN DEFAULT FALSE,
            en_oferta BOOLEAN DEFAULT FALSE,
            marca TEXT NOT NULL,
            modelo TEXT NOT NULL,
            version TEXT,
            "año_fabricacion" INTEGER,
            "año_matriculacion" INTEGER,
            tipo_motor TEXT,
            cilindrada INTEGER,
            potencia_cv INTEGER,
            potencia_kw INTEGER,
            combustible TEXT,
            consumo_mixto NUMERIC(5,2),
            emisiones_co2 INTEGER,
            etiqueta_dgt TEXT,
            transmision TEXT,
            num_marchas INTEGER,
            traccion TEXT,
            tipo_carroceria TEXT,
            num_puertas INTEGER,
            num_plazas INTEGER,
            color_exterior TEXT,
            color_interior TEXT,
            kilometraje INTEGER DEFAULT 0,
            num_propietarios INTEGER,
            es_nacional BOOLEAN DEFAULT TRUE,
            primera_mano BOOLEAN DEFAULT FALSE,
            precio_compra NUMERIC(12,2),
            gastos_compra NUMERIC(12,2) DEFAULT 0,
            coste_reparaciones NUMERIC(12,2) DEFAULT 0,
            precio_venta NUMERIC(12,2),
            descuento NUMERIC(12,2) DEFAULT 0,
            fecha_entrada_stock DATE DEFAULT CURRENT_DATE,
            garantia_meses INTEGER DEFAULT 12,
            tipo_garantia TEXT,
            fecha_itv_vencimiento DATE,
            imagen_principal TEXT,
            imagenes JSONB DEFAULT '[]',
            url_web TEXT,
            equipamiento JSONB DEFAULT '[]',
            descripcion TEXT,
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_by_name TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_vehicles_estado ON vehicles(estado)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_vehicles_marca ON vehicles(marca)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_vehicles_matricula ON vehicles(matricula)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_vehicles_vin ON vehicles(vin)')


def _create_crm_tables(cursor):
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS clients (
            id SERIAL PRIMARY KEY,
            nombre TEXT NOT NULL,
            apellidos TEXT,
            dni_cif TEXT,
            telefono TEXT,
            email TEXT,
            direccion TEXT,
            codigo_postal TEXT,
            localidad TEXT,
            provincia TEXT,
            notas TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS leads (
            id SERIAL PRIMARY KEY,
            cliente_id INTEGER REFERENCES clients(id) ON DELETE SET NULL,
            vehiculo_interes_id INTEGER REFERENCES vehicles(id) ON DELETE SET NULL,
            estado TEXT NOT NULL DEFAULT 'nuevo',
            prioridad TEXT DEFAULT 'media',
            probabilidad INTEGER DEFAULT 0,
            tipo_interes TEXT,
            presupuesto_cliente NUMERIC(12,2),
            forma_pago TEXT,
            asignado_a INTEGER REFERENCES users(id) ON DELETE SET NULL,
            origen TEXT,
            cliente_nombre TEXT,
            cliente_apellidos TEXT,
            cliente_telefono TEXT,
            cliente_email TEXT,
            fecha_cierre TIMESTAMP,
            proxima_accion TEXT,
            fecha_proxima_accion TIMESTAMP,
            motivo_perdida TEXT,
            notas TEXT,
            ultima_interaccion TIMESTAMP,
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_by_name TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_leads_estado ON leads(estado)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_leads_asignado ON leads(asignado_a)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS contacts (
            id SERIAL PRIMARY KEY,
            telefono TEXT,
            email TEXT,
            nombre TEXT,
            apellidos TEXT,
            dni_cif TEXT,
            direccion TEXT,
            codigo_postal TEXT,
            localidad TEXT,
            provincia TEXT,
            origen TEXT DEFAULT 'otro',
            estado TEXT DEFAULT 'pendiente',
            vehiculos_interes JSONB DEFAULT '[]',
            progreso INTEGER DEFAULT 0,
            categoria TEXT,
            asunto TEXT,
            comercial_asignado INTEGER REFERENCES users(id) ON DELETE SET NULL,
            tipo_pago TEXT,
            precio NUMERIC(12,2),
            reserva NUMERIC(12,2),
            prioridad TEXT DEFAULT 'media',
            fecha_seguimiento TIMESTAMP,
            notas TEXT,
            ultima_interaccion TIMESTAMP,
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_contacts_estado ON contacts(estado)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_contacts_comercial ON contacts(comercial_asignado)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS interactions (
            id SERIAL PRIMARY KEY,
            contact_id INTEGER REFERENCES contacts(id) ON DELETE CASCADE,
            lead_id INTEGER REFERENCES leads(id) ON DELETE CASCADE,
            tipo TEXT NOT NULL,
            descripcion TEXT,
            resultado TEXT,
            user_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
            user_name TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_interactions_contact ON interactions(contact_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_interactions_lead ON interactions(lead_id)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS sales (
            id SERIAL PRIMARY KEY,
            numero_factura TEXT UNIQUE,
            cliente_id INTEGER REFERENCES clients(id) ON DELETE SET NULL,
            vehiculo_id INTEGER REFERENCES vehicles(id) ON DELETE SET NULL,
            lead_id INTEGER REFERENCES leads(id) ON DELETE SET NULL,
            vendedor_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
            fecha_venta DATE DEFAULT CURRENT_DATE,
            fecha_entrega DATE,
            precio_venta NUMERIC(12,2) NOT NULL,
            descuento NUMERIC(12,2) DEFAULT 0,
            gastos_adicionales NUMERIC(12,2) DEFAULT 0,
            precio_final NUMERIC(12,2),
            margen_bruto NUMERIC(12,2),
            porcentaje_margen NUMERIC(6,2),
            forma_pago TEXT,
            financiacion BOOLEAN DEFAULT FALSE,
            estado TEXT NOT NULL DEFAULT 'completada',
            notas TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_sales_fecha ON sales(fecha_venta)')


def _create_insurance_tables(cursor):
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS polizas_seguro (
            id SERIAL PRIMARY KEY,
            vehiculo_id INTEGER REFERENCES vehicles(id) ON DELETE SET NULL,
            vehiculo_matricula TEXT,
            numero_poliza TEXT NOT NULL UNIQUE,
            compania_aseguradora TEXT,
            tipo_poliza TEXT DEFAULT 'todo_riesgo_sin_franquicia',
            fecha_alta DATE,
            fecha_vencimiento DATE NOT NULL,
            prima_anual NUMERIC(10,2),
            franquicia NUMERIC(10,2),
            tomador_nombre TEXT,
            tomador_nif TEXT,
            coberturas JSONB,
            documento_poliza TEXT,
            documento_recibo TEXT,
            estado TEXT NOT NULL DEFAULT 'activa',
            notas TEXT,
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_by_name TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_polizas_vehiculo ON polizas_seguro(vehiculo_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_polizas_vencimiento ON polizas_seguro(fecha_vencimiento)')


def _create_web_tables(cursor):
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS web_content (
            id SERIAL PRIMARY KEY,
            seccion TEXT NOT NULL,
            clave TEXT NOT NULL,
            valor TEXT,
            tipo TEXT DEFAULT 'text',
            orden INTEGER DEFAULT 0,
            activo BOOLEAN DEFAULT TRUE,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (seccion, clave)
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS web_config (
            id SERIAL PRIMARY KEY,
            clave TEXT NOT NULL UNIQUE,
            valor TEXT,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS web_testimonials (
            id SERIAL PRIMARY KEY,
            nombre TEXT NOT NULL,
            fecha TEXT,
            rating INTEGER DEFAULT 5 CHECK (rating BETWEEN 1 AND 5),
            texto TEXT NOT NULL,
            imagen_url TEXT,
            activo BOOLEAN DEFAULT TRUE,
            orden INTEGER DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS web_benefits (
            id SERIAL PRIMARY KEY,
            titulo TEXT NOT NULL,
            descripcion TEXT,
            icono TEXT,
            orden INTEGER DEFAULT 0,
            activo BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS web_faqs (
            id SERIAL PRIMARY KEY,
            seccion TEXT DEFAULT 'general',
            pregunta TEXT NOT NULL,
            respuesta TEXT NOT NULL,
            orden INTEGER DEFAULT 0,
            activo BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS blog_categories (
            id SERIAL PRIMARY KEY,
            nombre TEXT NOT NULL,
            slug TEXT NOT NULL UNIQUE,
            descripcion TEXT,
            imagen_url TEXT,
            orden INTEGER DEFAULT 0,
            activo BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS blog_posts (
            id SERIAL PRIMARY KEY,
            slug TEXT NOT NULL UNIQUE,
            titulo TEXT NOT NULL,
            extracto TEXT,
            contenido TEXT,
            imagen_principal TEXT,
            categoria_id INTEGER REFERENCES blog_categories(id) ON DELETE SET NULL,
            autor TEXT,
            tags TEXT[] DEFAULT '{}',
            seo_titulo TEXT,
            seo_descripcion TEXT,
            seo_keywords TEXT,
            estado TEXT NOT NULL DEFAULT 'borrador',
            destacado BOOLEAN DEFAULT FALSE,
            orden INTEGER DEFAULT 0,
            fecha_publicacion TIMESTAMP,
            vistas INTEGER DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_blog_posts_estado ON blog_posts(estado)')


def _create_document_tables(cursor):
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS empresas (
            id SERIAL PRIMARY KEY,
            nombre TEXT NOT NULL,
            cif TEXT,
            direccion TEXT,
            codigo_postal TEXT,
            localidad TEXT,
            provincia TEXT,
            telefono TEXT,
            email TEXT,
            iban TEXT,
            logo_url TEXT,
            es_principal BOOLEAN DEFAULT FALSE,
            activo BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # Snapshot columns shared by every document table
    party = '''
            empresa_id INTEGER REFERENCES empresas(id) ON DELETE SET NULL,
            empresa_nombre TEXT,
            empresa_cif TEXT,
            empresa_direccion TEXT,
            vehiculo_id INTEGER REFERENCES vehicles(id) ON DELETE SET NULL,
    '''
    buyer = '''
            {p}_nombre TEXT,
            {p}_apellidos TEXT,
            {p}_documento TEXT,
            {p}_direccion TEXT,
            {p}_cp TEXT,
            {p}_localidad TEXT,
            {p}_provincia TEXT,
    '''
    audit = '''
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    '''
    vehicle_snapshot = '''
            vehiculo_marca TEXT,
            vehiculo_modelo TEXT,
            vehiculo_matricula TEXT,
            vehiculo_vin TEXT,
            vehiculo_km INTEGER,
    '''

    cursor.execute(f'''
        CREATE TABLE IF NOT EXISTS contratos (
            id SERIAL PRIMARY KEY,
            numero_contrato TEXT NOT NULL UNIQUE,
            {party}{vehicle_snapshot}{buyer.format(p='comprador')}
            comprador_telefono TEXT,
            comprador_email TEXT,
            precio_venta NUMERIC(12,2),
            base_imponible NUMERIC(12,2),
            iva_percent NUMERIC(5,2),
            iva_importe NUMERIC(12,2),
            forma_pago TEXT,
            garantia_meses INTEGER,
            garantia_km INTEGER,
            fecha_firma DATE,
            lugar_firma TEXT,
            fecha_entrega DATE,
            clausulas_adicionales TEXT,
            estado TEXT DEFAULT 'borrador',
            {audit}
        )
    ''')

    cursor.execute(f'''
        CREATE TABLE IF NOT EXISTS senales (
            id SERIAL PRIMARY KEY,
            numero_senal TEXT NOT NULL UNIQUE,
            {party}{vehicle_snapshot}{buyer.format(p='comprador')}
            comprador_telefono TEXT,
            comprador_email TEXT,
            precio_total NUMERIC(12,2),
            importe_senal NUMERIC(12,2),
            resto_pendiente NUMERIC(12,2),
            fecha_senal DATE,
            fecha_limite_venta DATE,
            cuenta_bancaria TEXT,
            observaciones TEXT,
            estado TEXT DEFAULT 'activa',
            {audit}
        )
    ''')

    invoice_columns = '''
            vehiculo_descripcion TEXT,
            base_imponible NUMERIC(12,2),
            tipo_iva NUMERIC(5,2),
            iva NUMERIC(12,2),
            total NUMERIC(12,2),
            forma_pago TEXT,
            cuenta_bancaria TEXT,
    '''

    cursor.execute(f'''
        CREATE TABLE IF NOT EXISTS facturas (
            id SERIAL PRIMARY KEY,
            numero_factura TEXT NOT NULL UNIQUE,
            {party}{buyer.format(p='cliente')}{invoice_columns}
            fecha_factura DATE,
            notas TEXT,
            estado TEXT DEFAULT 'pendiente',
            {audit}
        )
    ''')

    cursor.execute(f'''
        CREATE TABLE IF NOT EXISTS proformas (
            id SERIAL PRIMARY KEY,
            numero_proforma TEXT NOT NULL UNIQUE,
            {party}{buyer.format(p='cliente')}{invoice_columns}
            importe_reserva NUMERIC(12,2),
            fecha_proforma DATE,
            validez_dias INTEGER,
            fecha_expiracion DATE,
            observaciones TEXT,
            estado TEXT DEFAULT 'vigente',
            {audit}
        )
    ''')


def _seed(cursor):
    admin_email = os.environ.get('ADMIN_EMAIL')
    admin_password = os.environ.get('ADMIN_PASSWORD')
    if admin_email and admin_password:
        cursor.execute('''
            INSERT INTO users (email, name, password_hash, role)
            VALUES (%s, %s, %s, 'admin')
            ON CONFLICT (email) DO NOTHING
        ''', (admin_email, 'Administrador', generate_password_hash(admin_password)))
        logger.info(f'Seeded admin user {admin_email}')

    cursor.execute('''
        INSERT INTO web_config (clave, valor) VALUES
            ('nombre_empresa', 'MidCar'),
            ('telefono', ''),
            ('email', ''),
            ('direccion', ''),
            ('horario', 'L-V 9:00-20:00, S 10:00-14:00'),
            ('whatsapp', '')
        ON CONFLICT (clave) DO NOTHING
    ''')

    cursor.execute('''
        INSERT INTO web_content (seccion, clave, valor, orden) VALUES
            ('hero', 'titulo', 'Tu próximo coche te está esperando', 1),
            ('hero', 'subtitulo', 'Vehículos de ocasión revisados y con garantía', 2),
            ('hero', 'cta_texto', 'Ver stock', 3),
            ('cta', 'titulo', '¿Quieres vender tu coche?', 1),
            ('cta', 'texto', 'Te hacemos una tasación gratuita en 24 horas', 2),
            ('warranty', 'titulo', 'Garantía MidCar', 1),
            ('warranty', 'meses', '12', 2)
        ON CONFLICT (seccion, clave) DO NOTHING
    ''')

    cursor.execute('''
        INSERT INTO blog_categories (nombre, slug, orden) VALUES
            ('Consejos', 'consejos', 1),
            ('Noticias', 'noticias', 2)
        ON CONFLICT (slug) DO NOTHING
    ''')

    cursor.execute('SELECT COUNT(*) as count FROM empresas')
    if cursor.fetchone()['count'] == 0:
        cursor.execute('''
            INSERT INTO empresas (nombre, es_principal, activo)
            VALUES ('MIDCAR AUTOMOCIÓN S.L.', TRUE, TRUE)
        ''')


def create_schema(conn, cursor):
    """Create all database tables, indexes, and seed data.

    Args:
        conn: Database connection (for commit/rollback)
        cursor: Database cursor from get_cursor(conn)
    """
    _create_core_tables(cursor)
    _create_crm_tables(cursor)
    _create_insurance_tables(cursor)
    _create_web_tables(cursor)
    _create_document_tables(cursor)
    _seed(cursor)
    conn.commit()
    logger.info('Schema created')
