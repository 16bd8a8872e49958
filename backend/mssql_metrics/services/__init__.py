"""
Services module

- data: 数据访问层（连接器、查询目录、行解码）
- metrics: 采集编排与累加器
- discovery: 本机实例发现
"""
